"""Per-stage execution with retry and cross-provider fallback.

Attempt 1 calls the stage's primary model, attempt 2 repeats the same call,
attempt 3 switches to the cheapest credentialed model from another provider.
When every attempt fails, a non-final stage is skipped and the run carries on;
the final stage is the synthesis, so its failure ends the run.
"""

import logging
from contextlib import aclosing
from dataclasses import dataclass

from rosin.cancellation import CancellationToken, RunCancelledError
from rosin.credentials import Credentials
from rosin.events import EventSink, StageComplete, StageContent, StageError, StageRetry, StageSkipped, StageStart
from rosin.models import ModelRef, Provider, StageResult, StageStatus
from rosin.prompts import StagePrompt
from rosin.providers.base import MissingApiKeyError, ProviderError, StreamingAdapter

logger = logging.getLogger(__name__)

RETRY_ATTEMPT = 2
FALLBACK_ATTEMPT = 3


class StageFailedError(Exception):
    """Every attempt on the final stage failed. Fatal for the run."""

    def __init__(self, stage: int, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(f"Stage {stage} failed: {message}")


def select_fallback_model(
    primary_provider: Provider,
    candidates: list[ModelRef],
    credentials: Credentials,
) -> ModelRef | None:
    """First candidate from a different provider that we hold a key for."""
    for candidate in candidates:
        if candidate.provider != primary_provider and credentials.has(candidate.provider):
            return candidate
    return None


@dataclass
class StageExecutor:
    adapters: dict[Provider, StreamingAdapter]
    credentials: Credentials
    fallback_models: list[ModelRef]
    emit: EventSink
    token: CancellationToken

    async def run_stage(
        self,
        stage: int,
        primary: ModelRef,
        prompt: StagePrompt,
        max_tokens: int,
        is_final: bool,
    ) -> StageResult:
        """Run one stage to a terminal state.

        Returns the StageResult with status COMPLETE, or SKIPPED when a non-final
        stage ran out of attempts; a skipped result must not feed later stages.

        Raises:
            StageFailedError: All attempts on the final stage failed.
            RunCancelledError: The run was cancelled; nothing more is emitted.
        """
        result = StageResult(stage=stage, model=primary)
        self.emit(StageStart(stage=stage, model=primary))

        error = await self._attempt(result, primary, prompt, max_tokens, attempt=1)
        if error is None:
            return self._complete(result)

        self.token.raise_if_cancelled()
        self._mark_retrying(result, primary)
        self.emit(StageRetry(stage=stage, model=primary, attempt=RETRY_ATTEMPT))
        error = await self._attempt(result, primary, prompt, max_tokens, attempt=RETRY_ATTEMPT)
        if error is None:
            return self._complete(result)

        self.token.raise_if_cancelled()
        fallback = select_fallback_model(primary.provider, self.fallback_models, self.credentials)
        if fallback is not None:
            logger.info("Stage %d falling back from %s to %s", stage, primary.label, fallback.label)
            self._mark_retrying(result, fallback)
            self.emit(StageRetry(stage=stage, model=fallback, attempt=FALLBACK_ATTEMPT))
            error = await self._attempt(result, fallback, prompt, max_tokens, attempt=FALLBACK_ATTEMPT)
            if error is None:
                return self._complete(result)
            self.token.raise_if_cancelled()
        else:
            logger.warning("Stage %d: no credentialed fallback outside %s", stage, primary.provider.value)

        result.content = ""
        result.error = error
        if is_final:
            result.status = StageStatus.ERROR
            logger.error("Final stage %d exhausted all attempts: %s", stage, error)
            self.emit(StageError(stage=stage, error=error))
            raise StageFailedError(stage, error)

        result.status = StageStatus.SKIPPED
        logger.warning("Stage %d skipped after all attempts failed: %s", stage, error)
        self.emit(StageSkipped(stage=stage, error=error))
        return result

    async def _attempt(
        self,
        result: StageResult,
        model: ModelRef,
        prompt: StagePrompt,
        max_tokens: int,
        attempt: int,
    ) -> str | None:
        """Stream one attempt into `result`. Returns None on success, else the error message."""
        self.token.raise_if_cancelled()
        result.status = StageStatus.STREAMING
        try:
            api_key = self.credentials.get(model.provider)
            if not api_key:
                raise MissingApiKeyError(model.provider)
            adapter = self.adapters[model.provider]
            stream = adapter.stream(model.model, prompt.system_prompt, prompt.user_content, api_key, max_tokens)
            async with aclosing(stream) as tokens:
                async for text in tokens:
                    self.token.raise_if_cancelled()
                    result.content += text
                    self.emit(StageContent(stage=result.stage, content=text))
        except RunCancelledError:
            raise
        except ProviderError as exc:
            logger.warning("Stage %d attempt %d (%s) failed: %s", result.stage, attempt, model.label, exc)
            return str(exc)
        except Exception as exc:
            logger.warning(
                "Stage %d attempt %d (%s) unexpected failure: %s", result.stage, attempt, model.label, exc
            )
            return f"Unexpected error: {exc}"
        return None

    def _mark_retrying(self, result: StageResult, model: ModelRef) -> None:
        # Partial text from the failed attempt is discarded.
        result.status = StageStatus.RETRYING
        result.content = ""
        result.model = model

    def _complete(self, result: StageResult) -> StageResult:
        result.status = StageStatus.COMPLETE
        self.emit(StageComplete(stage=result.stage))
        return result
