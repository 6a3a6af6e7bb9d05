"""Query complexity scoring: maps a query to a length tier and token budget."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from rosin.models import ComplexityTier, LengthConfig


@dataclass(frozen=True)
class TierSpec:
    max_tokens: int
    prompt_instruction: str
    verify_instruction: str
    final_instruction: str


@dataclass(frozen=True)
class ClassifierRules:
    """Empirically tuned scoring table. Kept as data so it can be re-ranked from settings."""

    # (min_words, max_words or None, points); first matching band wins
    word_bands: tuple[tuple[int, int | None, int], ...] = ((9, 25, 1), (26, 50, 2), (51, None, 3))
    question_mark_threshold: int = 2
    question_mark_points: int = 2
    multipart_pattern: str = r"and also|additionally|furthermore|moreover"
    numbered_list_pattern: str = r"\d+\.\s"
    multipart_points: int = 2
    depth_keywords: tuple[str, ...] = (
        "explain", "analyze", "analyse", "compare", "contrast",
        "discuss", "step by step", "in detail", "elaborate", "comprehensive",
    )
    depth_cap: int = 2
    simplicity_patterns: tuple[str, ...] = (
        "what is", "what's", "define", "who is", "who's", "yes or no", "true or false",
    )
    simplicity_penalty: int = 2
    brief_max_score: int = 0
    moderate_max_score: int = 3
    tiers: Mapping[ComplexityTier, TierSpec] = field(default_factory=lambda: DEFAULT_TIERS)

    def __post_init__(self) -> None:
        if not isinstance(self.tiers, MappingProxyType):
            object.__setattr__(self, "tiers", MappingProxyType(dict(self.tiers)))


DEFAULT_TIERS: Mapping[ComplexityTier, TierSpec] = MappingProxyType({
    ComplexityTier.BRIEF: TierSpec(
        max_tokens=512,
        prompt_instruction="Respond concisely. A few sentences is ideal.",
        verify_instruction="Keep your verification concise. Only flag real issues.",
        final_instruction="Synthesize into a brief, direct answer.",
    ),
    ComplexityTier.MODERATE: TierSpec(
        max_tokens=1536,
        prompt_instruction="Cover key points without excessive elaboration.",
        verify_instruction="Verify key claims. Be thorough but not verbose.",
        final_instruction="Produce a clear, well-structured answer covering the key points.",
    ),
    ComplexityTier.DETAILED: TierSpec(
        max_tokens=3072,
        prompt_instruction="Be thorough and comprehensive. Cover all aspects in depth.",
        verify_instruction="Conduct a thorough verification. Check every claim and add missing detail.",
        final_instruction="Produce a comprehensive, detailed synthesis covering all aspects in depth.",
    ),
})

DEFAULT_RULES = ClassifierRules()


def score_query(query: str, rules: ClassifierRules = DEFAULT_RULES) -> int:
    trimmed = query.strip()
    lower = trimmed.lower()
    word_count = len(trimmed.split())

    score = 0
    for low, high, points in rules.word_bands:
        if word_count >= low and (high is None or word_count <= high):
            score += points
            break

    if query.count("?") >= rules.question_mark_threshold:
        score += rules.question_mark_points

    if (
        re.search(rules.multipart_pattern, lower)
        or re.search(rules.numbered_list_pattern, trimmed)
        or ";" in trimmed
    ):
        score += rules.multipart_points

    depth_hits = sum(1 for keyword in rules.depth_keywords if keyword in lower)
    score += min(depth_hits, rules.depth_cap)

    if any(pattern in lower for pattern in rules.simplicity_patterns):
        score -= rules.simplicity_penalty

    return score


def tier_for_score(score: int, rules: ClassifierRules = DEFAULT_RULES) -> ComplexityTier:
    if score <= rules.brief_max_score:
        return ComplexityTier.BRIEF
    if score <= rules.moderate_max_score:
        return ComplexityTier.MODERATE
    return ComplexityTier.DETAILED


def classify(query: str, rules: ClassifierRules = DEFAULT_RULES) -> LengthConfig:
    """Return the length configuration for a query. Pure, deterministic."""
    tier = tier_for_score(score_query(query, rules), rules)
    spec = rules.tiers[tier]
    return LengthConfig(
        tier=tier,
        max_tokens=spec.max_tokens,
        prompt_instruction=spec.prompt_instruction,
        verify_instruction=spec.verify_instruction,
        final_instruction=spec.final_instruction,
    )
