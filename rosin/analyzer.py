"""Post-run consensus analysis, with a deterministic fallback summary."""

import json
import logging
import math
import re

from rosin.credentials import Credentials
from rosin.models import Contradiction, ModelRef, PipelineRun, Provider, VerificationSummary
from rosin.prompts import format_prior_stages
from rosin.providers.base import ProviderError, StreamingAdapter

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL | re.IGNORECASE)


def heuristic_summary(completed: int, total: int) -> VerificationSummary:
    """Summary built from stage counts alone, used when analysis is unavailable."""
    skipped = total - completed
    if completed < 2:
        consistency = f"Insufficient stages for cross-verification ({completed} of {total} completed)"
    else:
        consistency = f"Cross-verified across {completed} of {total} stages"
        if skipped:
            consistency += f" ({skipped} skipped)"

    if completed >= 3:
        confidence = "High"
    elif completed == 2:
        confidence = "Moderate"
    else:
        confidence = "Low"

    if skipped:
        hallucinations = (
            f"Reduced coverage: {skipped} stage(s) skipped, so fewer models checked each claim"
        )
    else:
        hallucinations = "Checked at each stage; potential issues flagged in the stage outputs"

    return VerificationSummary(
        consistency=consistency,
        hallucinations=hallucinations,
        confidence=confidence,
        contradictions=[],
        is_analyzed=False,
    )


def select_analyzer_model(candidates: list[ModelRef], credentials: Credentials) -> ModelRef | None:
    for candidate in candidates:
        if credentials.has(candidate.provider):
            return candidate
    return None


def strip_code_fences(text: str) -> str:
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def parse_analysis(text: str) -> dict | None:
    """Decode the analyzer's JSON, retrying once with Markdown fences removed."""
    for candidate in (text, strip_code_fences(text)):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _clamp_score(value) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return max(0.0, min(1.0, float(value)))


def summary_from_analysis(data: dict, completed_stage_numbers: set[int]) -> VerificationSummary:
    score = _clamp_score(data.get("confidenceScore"))
    level = str(data.get("confidenceLevel") or "Unknown")
    confidence = f"{level} ({round(score * 100)}%)" if score is not None else level

    contradictions: list[Contradiction] = []
    raw_contradictions = data.get("contradictions")
    if not isinstance(raw_contradictions, list):
        raw_contradictions = []
    for raw in raw_contradictions:
        if not isinstance(raw, dict):
            continue
        try:
            stage_a, stage_b = int(raw["stageA"]), int(raw["stageB"])
        except (KeyError, TypeError, ValueError, OverflowError):
            continue
        if stage_a not in completed_stage_numbers or stage_b not in completed_stage_numbers:
            logger.debug("Dropping contradiction with unknown stages %d/%d", stage_a, stage_b)
            continue
        contradictions.append(
            Contradiction(
                topic=str(raw.get("topic", "")),
                stage_a=stage_a,
                stage_b=stage_b,
                description=str(raw.get("description", "")),
            )
        )

    return VerificationSummary(
        consistency=str(data.get("consistencySummary") or ""),
        hallucinations=str(data.get("hallucinationRisk") or ""),
        confidence=confidence,
        confidence_score=score,
        contradictions=contradictions,
        is_analyzed=True,
    )


async def analyze_consensus(
    run: PipelineRun,
    adapters: dict[Provider, StreamingAdapter],
    credentials: Credentials,
    candidates: list[ModelRef],
    system_prompt: str,
    max_tokens: int,
) -> VerificationSummary:
    """Judge cross-stage agreement with one non-streaming call.

    Never raises for analysis problems: any missing model, call failure or
    unparsable reply yields the heuristic summary instead.
    """
    completed = len(run.completed_stages)
    fallback = heuristic_summary(completed, run.total_stages)
    if completed < 2:
        return fallback

    model = select_analyzer_model(candidates, credentials)
    if model is None:
        logger.info("No credentialed analyzer model; using heuristic summary")
        return fallback

    user_content = (
        f"Original Query: {run.query}\n\n"
        f"Stage Responses:\n\n{format_prior_stages(run.completed_stages)}"
    )
    logger.info("Running consensus analysis via %s", model.label)
    try:
        reply = await adapters[model.provider].complete(
            model.model,
            system_prompt,
            user_content,
            credentials.get(model.provider) or "",
            max_tokens,
        )
    except ProviderError as exc:
        logger.warning("Consensus analysis failed: %s", exc)
        return fallback

    data = parse_analysis(reply)
    if data is None:
        logger.warning("Consensus analysis reply was not valid JSON; using heuristic summary")
        return fallback

    try:
        return summary_from_analysis(data, {s.stage for s in run.completed_stages})
    except (TypeError, ValueError, OverflowError) as exc:
        logger.warning("Consensus analysis reply had an unexpected shape (%s); using heuristic summary", exc)
        return fallback
