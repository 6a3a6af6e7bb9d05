"""Tests for rosin/prompts.py."""

import pytest

from rosin.classifier import classify
from rosin.config.config_loader import load_config
from rosin.models import StageResult, StageStatus
from rosin.prompts import build_stage_prompt, build_system_prompt, format_prior_stages
from tests.conftest import CLAUDE, GEMINI_PRO, GROK

BRIEF = classify("What is the capital of France?")
DETAILED = classify("Explain and compare the economic policies of the 1930s and 1970s; how did they differ?")


def _stage(n, model, content) -> StageResult:
    return StageResult(stage=n, model=model, content=content, status=StageStatus.COMPLETE)


PRIOR = [_stage(1, CLAUDE, "Paris."), _stage(2, GEMINI_PRO, "Paris, confirmed.")]


def test_first_stage_uses_initial_template(sample_prompts_config):
    prompt = build_stage_prompt(1, 3, "Capital of France?", [], BRIEF, sample_prompts_config)
    assert prompt.system_prompt == f"INITIAL stage 1/3. {BRIEF.prompt_instruction}"
    assert prompt.user_content == "Original Query: Capital of France?"


def test_middle_stage_uses_verify_template(sample_prompts_config):
    prompt = build_stage_prompt(2, 3, "q", PRIOR[:1], DETAILED, sample_prompts_config)
    assert prompt.system_prompt == f"VERIFY stage 2/3. {DETAILED.verify_instruction}"


def test_middle_stage_adversarial(sample_prompts_config):
    prompt = build_stage_prompt(2, 3, "q", PRIOR[:1], BRIEF, sample_prompts_config, adversarial_mode=True)
    assert prompt.system_prompt.startswith("ADVERSARIAL stage 2/3.")


def test_final_stage_uses_final_template(sample_prompts_config):
    prompt = build_stage_prompt(3, 3, "q", PRIOR, BRIEF, sample_prompts_config, adversarial_mode=True)
    assert prompt.system_prompt == f"FINAL stage 3/3. {BRIEF.final_instruction}"


def test_two_stage_chain_never_builds_verify(sample_prompts_config):
    prompts = [
        build_system_prompt(stage, 2, BRIEF, sample_prompts_config, adversarial_mode=adversarial)
        for stage in (1, 2)
        for adversarial in (False, True)
    ]
    assert not any(p.startswith(("VERIFY", "ADVERSARIAL")) for p in prompts)
    assert prompts[2].startswith("FINAL")


def test_user_content_labels_every_prior_stage(sample_prompts_config):
    prompt = build_stage_prompt(3, 4, "Capital of France?", PRIOR, BRIEF, sample_prompts_config)
    assert prompt.user_content == (
        "Original Query: Capital of France?\n\n"
        "Previous Stages:\n\n"
        "--- Stage 1 (Anthropic/claude-sonnet-4-5) ---\nParis.\n\n"
        "--- Stage 2 (Gemini/gemini-2.5-pro) ---\nParis, confirmed."
    )


def test_prior_stage_numbers_survive_a_skip():
    prior = [_stage(1, CLAUDE, "A"), _stage(3, GROK, "C")]
    text = format_prior_stages(prior)
    assert "--- Stage 1 (Anthropic/claude-sonnet-4-5) ---" in text
    assert "--- Stage 3 (xAI/grok-3) ---" in text
    assert "Stage 2" not in text


@pytest.mark.parametrize("total", [2, 3, 4])
def test_shipped_prompts_render(total):
    prompts = load_config().prompts
    first = build_system_prompt(1, total, DETAILED, prompts)
    last = build_system_prompt(total, total, DETAILED, prompts)
    assert "initial, thorough response" in first
    assert f"{total}-stage" in first
    assert DETAILED.prompt_instruction in first
    assert f"({total} of {total})" in last
    assert "{" not in first and "{" not in last


def test_shipped_adversarial_prompt_differs_from_verify():
    prompts = load_config().prompts
    standard = build_system_prompt(2, 4, BRIEF, prompts)
    adversarial = build_system_prompt(2, 4, BRIEF, prompts, adversarial_mode=True)
    assert standard != adversarial
    assert "adversarial" in adversarial
    assert "stage 2 of 4" in standard
