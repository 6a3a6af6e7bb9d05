"""Tests for rosin/classifier.py."""

from dataclasses import replace

import pytest

from rosin.classifier import DEFAULT_RULES, classify, score_query, tier_for_score
from rosin.models import ComplexityTier


def test_simple_factual_query_is_brief():
    config = classify("What is the capital of France?")
    assert score_query("What is the capital of France?") == -2
    assert config.tier == ComplexityTier.BRIEF
    assert config.max_tokens == 512
    assert config.prompt_instruction == "Respond concisely. A few sentences is ideal."


def test_single_depth_keyword_is_moderate():
    config = classify("Explain how photosynthesis works in plants")
    assert config.tier == ComplexityTier.MODERATE
    assert config.max_tokens == 1536


def test_multipart_analytical_query_is_detailed():
    query = "Explain and compare the economic policies of the 1930s and 1970s; how did they differ?"
    config = classify(query)
    assert score_query(query) == 5
    assert config.tier == ComplexityTier.DETAILED
    assert config.max_tokens == 3072
    assert "comprehensive" in config.final_instruction


@pytest.mark.parametrize(
    "words,points",
    [(8, 0), (9, 1), (25, 1), (26, 2), (50, 2), (51, 3)],
)
def test_word_count_bands(words, points):
    assert score_query(" ".join(["word"] * words)) == points


def test_two_question_marks_add_points():
    assert score_query("Why? How?") == 2
    assert score_query("Why?") == 0


def test_numbered_list_counts_as_multipart():
    assert score_query("Cover 1. syntax 2. semantics") == 2


def test_multipart_phrases_counted_once():
    assert score_query("Tea; and also coffee, moreover cocoa") == 2


def test_depth_keywords_are_capped():
    assert score_query("explain analyze compare contrast discuss") == 2


def test_simplicity_penalty_applies_once():
    assert score_query("What is X and who is Y") == -2


def test_tier_boundaries():
    assert tier_for_score(0) == ComplexityTier.BRIEF
    assert tier_for_score(1) == ComplexityTier.MODERATE
    assert tier_for_score(3) == ComplexityTier.MODERATE
    assert tier_for_score(4) == ComplexityTier.DETAILED


def test_classify_is_deterministic():
    query = "Discuss the causes of World War I in detail"
    assert classify(query) == classify(query)


def test_custom_rules_shift_thresholds():
    rules = replace(DEFAULT_RULES, brief_max_score=-5, moderate_max_score=-1)
    assert classify("What is the capital of France?", rules).tier == ComplexityTier.MODERATE
    assert classify("Explain gravity", rules).tier == ComplexityTier.DETAILED


def test_tier_table_is_read_only():
    with pytest.raises(TypeError):
        DEFAULT_RULES.tiers[ComplexityTier.BRIEF] = DEFAULT_RULES.tiers[ComplexityTier.DETAILED]
    assert classify("What is the capital of France?").max_tokens == 512


def test_caller_supplied_tiers_are_copied_read_only():
    tiers = dict(DEFAULT_RULES.tiers)
    rules = replace(DEFAULT_RULES, tiers=tiers)
    tiers[ComplexityTier.BRIEF] = DEFAULT_RULES.tiers[ComplexityTier.DETAILED]

    assert rules.tiers[ComplexityTier.BRIEF].max_tokens == 512
    with pytest.raises(TypeError):
        rules.tiers[ComplexityTier.BRIEF] = tiers[ComplexityTier.BRIEF]
