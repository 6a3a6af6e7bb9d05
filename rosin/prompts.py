"""Stage prompt construction: generate, verify (standard or adversarial), synthesize."""

from dataclasses import dataclass

from rosin.config.config_loader import PromptsConfig
from rosin.models import LengthConfig, StageResult


@dataclass(frozen=True)
class StagePrompt:
    system_prompt: str
    user_content: str


def format_prior_stages(prior_stages: list[StageResult]) -> str:
    """Label every completed prior stage with its number and model."""
    parts = [
        f"--- Stage {s.stage} ({s.model.label}) ---\n{s.content}"
        for s in prior_stages
    ]
    return "\n\n".join(parts)


def build_system_prompt(
    stage: int,
    total_stages: int,
    length_config: LengthConfig,
    prompts: PromptsConfig,
    adversarial_mode: bool = False,
) -> str:
    if stage == 1:
        template, instruction = prompts.initial, length_config.prompt_instruction
    elif stage == total_stages:
        # For a 2-stage chain stage 2 is the synthesizer; no verify prompt is built.
        template, instruction = prompts.final, length_config.final_instruction
    elif adversarial_mode:
        template, instruction = prompts.adversarial, length_config.verify_instruction
    else:
        template, instruction = prompts.verify, length_config.verify_instruction
    return template.format(stage=stage, total=total_stages, instruction=instruction).strip()


def build_user_content(query: str, prior_stages: list[StageResult]) -> str:
    if not prior_stages:
        return f"Original Query: {query}"
    return f"Original Query: {query}\n\nPrevious Stages:\n\n{format_prior_stages(prior_stages)}"


def build_stage_prompt(
    stage: int,
    total_stages: int,
    query: str,
    prior_stages: list[StageResult],
    length_config: LengthConfig,
    prompts: PromptsConfig,
    adversarial_mode: bool = False,
) -> StagePrompt:
    """Build the prompt pair for one stage from the query and all completed prior stages."""
    system_prompt = build_system_prompt(stage, total_stages, length_config, prompts, adversarial_mode)
    user_content = build_user_content(query, prior_stages if stage > 1 else [])
    return StagePrompt(system_prompt=system_prompt, user_content=user_content)
