"""HTTP execution mode: POST /api/verify streams pipeline events as SSE frames."""

import logging
from collections.abc import AsyncIterator

import click
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from rosin.config.config_loader import AppConfig, load_config
from rosin.credentials import Credentials
from rosin.events import StageError, encode_sse
from rosin.models import MAX_CHAIN_LENGTH, MIN_CHAIN_LENGTH, ModelRef, Provider, RunRequest
from rosin.pipeline import RecordSink, VerificationPipeline
from rosin.providers.base import StreamingAdapter
from rosin.providers.registry import build_adapters

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class ModelSelection(BaseModel):
    provider: Provider
    model: str = Field(min_length=1)


class VerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1)
    chain: list[ModelSelection] = Field(min_length=MIN_CHAIN_LENGTH, max_length=MAX_CHAIN_LENGTH)
    adversarial_mode: bool = Field(default=False, alias="adversarialMode")

    def to_run_request(self) -> RunRequest:
        return RunRequest(
            query=self.query,
            chain=[ModelRef(provider=m.provider, model=m.model) for m in self.chain],
            adversarial_mode=self.adversarial_mode,
        )


def create_app(
    config: AppConfig | None = None,
    credentials: Credentials | None = None,
    adapters: dict[Provider, StreamingAdapter] | None = None,
    on_record: RecordSink | None = None,
) -> FastAPI:
    """Build the app. Each request gets its own pipeline; only the provider adapters are shared."""
    config = config or load_config()
    credentials = credentials or Credentials.from_env(config.providers)
    if adapters is None:
        adapters = build_adapters(config.providers)

    app = FastAPI(title="Rosin Verification Service", version="0.1.0")

    @app.exception_handler(RequestValidationError)
    async def invalid_request(_request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": "rosin"}

    @app.post("/api/verify")
    async def verify(body: VerifyRequest):
        try:
            request = body.to_run_request()
        except ValueError as exc:
            return JSONResponse(status_code=400, content={"error": "Invalid request", "details": str(exc)})

        pipeline = VerificationPipeline(config, credentials, adapters=adapters, on_record=on_record)

        async def frames() -> AsyncIterator[str]:
            events = pipeline.events(request)
            stage = 1
            try:
                async for event in events:
                    stage = getattr(event, "stage", stage)
                    yield encode_sse(event)
            except Exception:
                logger.exception("Verification failed at stage %d", stage)
                yield encode_sse(StageError(stage=stage, error="Verification failed"))
            finally:
                # Client disconnects close this generator; the run must stop with it.
                await events.aclose()

        return StreamingResponse(frames(), media_type="text/event-stream", headers=SSE_HEADERS)

    return app


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
def main(host: str, port: int) -> None:
    """Serve the verification pipeline over HTTP."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
