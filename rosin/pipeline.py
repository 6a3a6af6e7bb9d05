"""Pipeline orchestration: sequential stages, cancellation, summary, event stream."""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable

from rosin.analyzer import analyze_consensus
from rosin.cancellation import CancellationToken, RunCancelledError
from rosin.classifier import classify
from rosin.config.config_loader import AppConfig
from rosin.credentials import Credentials
from rosin.events import Done, EventSink, PipelineEvent, Summary
from rosin.models import PipelineRun, Provider, RunRecord, RunRequest, StageResult, StageStatus
from rosin.prompts import build_stage_prompt
from rosin.providers.base import StreamingAdapter
from rosin.providers.registry import build_adapters
from rosin.resilience import StageExecutor, StageFailedError

logger = logging.getLogger(__name__)

RecordSink = Callable[[RunRecord], None]


def _gated(sink: EventSink, token: CancellationToken) -> EventSink:
    """Drop every event once the run is cancelled."""

    def emit(event: PipelineEvent) -> None:
        if not token.cancelled:
            sink(event)

    return emit


class VerificationPipeline:
    """Runs one query through a chain of models. One instance per user session.

    Only one run is active at a time: starting a run cancels the previous one.
    State of a run is owned by that run alone and never shared across sessions.
    """

    def __init__(
        self,
        config: AppConfig,
        credentials: Credentials,
        adapters: dict[Provider, StreamingAdapter] | None = None,
        on_record: RecordSink | None = None,
    ) -> None:
        self._config = config
        self._credentials = credentials
        self._adapters = adapters if adapters is not None else build_adapters(config.providers)
        self._on_record = on_record
        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        """Cancel the in-flight run, if any. Already-emitted tokens stay emitted."""
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def start(self, request: RunRequest, on_event: EventSink) -> asyncio.Task:
        """Run in a background task, cancelling whatever this session was running."""
        self.cancel()
        self._task = asyncio.create_task(self.run(request, on_event))
        return self._task

    async def run(self, request: RunRequest, on_event: EventSink) -> RunRecord | None:
        """Execute one run end to end.

        Returns:
            The finished RunRecord, or None when the run was cancelled.

        Raises:
            StageFailedError: The final stage failed on every attempt. Its
                stage_error has already been emitted; no summary follows.
        """
        if self._token is not None:
            self._token.cancel()
        token = CancellationToken()
        self._token = token

        try:
            return await self._execute(request, _gated(on_event, token), token)
        except RunCancelledError:
            logger.info("Run cancelled: %s", request.query[:60])
            return None
        except asyncio.CancelledError:
            token.cancel()
            raise

    async def _execute(
        self,
        request: RunRequest,
        emit: EventSink,
        token: CancellationToken,
    ) -> RunRecord:
        length_config = classify(request.query, self._config.classifier)
        run = PipelineRun(
            query=request.query,
            chain=list(request.chain),
            length_config=length_config,
            adversarial_mode=request.adversarial_mode,
        )
        total = run.total_stages
        logger.info(
            "Starting %d-stage run (tier=%s, max_tokens=%d, adversarial=%s)",
            total,
            length_config.tier.value,
            length_config.max_tokens,
            request.adversarial_mode,
        )

        executor = StageExecutor(
            adapters=self._adapters,
            credentials=self._credentials,
            fallback_models=self._config.fallback_models,
            emit=emit,
            token=token,
        )

        stage_results: list[StageResult] = []
        for stage, model in enumerate(run.chain, start=1):
            token.raise_if_cancelled()
            prompt = build_stage_prompt(
                stage=stage,
                total_stages=total,
                query=run.query,
                prior_stages=run.completed_stages,
                length_config=length_config,
                prompts=self._config.prompts,
                adversarial_mode=run.adversarial_mode,
            )
            result = await executor.run_stage(
                stage, model, prompt, length_config.max_tokens, is_final=stage == total
            )
            stage_results.append(result)
            if result.status == StageStatus.COMPLETE:
                run.completed_stages.append(result)

        token.raise_if_cancelled()
        summary = await analyze_consensus(
            run,
            adapters=self._adapters,
            credentials=self._credentials,
            candidates=self._config.analyzer.models,
            system_prompt=self._config.prompts.analysis,
            max_tokens=self._config.analyzer.max_tokens,
        )
        token.raise_if_cancelled()

        emit(Summary(summary=summary))
        emit(Done())
        logger.info(
            "Run complete: %d/%d stages, confidence=%s",
            len(run.completed_stages),
            total,
            summary.confidence,
        )

        record = RunRecord(
            query=run.query,
            chain=run.chain,
            stages=stage_results,
            summary=summary,
            adversarial_mode=run.adversarial_mode,
        )
        if self._on_record is not None:
            self._on_record(record)
        return record

    async def events(self, request: RunRequest) -> AsyncIterator[PipelineEvent]:
        """Yield the run's events as they happen. Closing the iterator cancels the run.

        A fatal final-stage failure ends the stream after its stage_error; any
        other exception from the run is re-raised here.
        """
        queue: asyncio.Queue[PipelineEvent | None] = asyncio.Queue()
        task = self.start(request, queue.put_nowait)
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while (event := await queue.get()) is not None:
                yield event
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None and not isinstance(exc, StageFailedError):
                raise exc
        finally:
            if not task.done():
                self.cancel()
