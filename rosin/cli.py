"""Click CLI: loads config, builds the chain, runs the pipeline and renders events."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from rosin.config.config_loader import AppConfig, load_config, parse_model_ref
from rosin.credentials import Credentials
from rosin.models import MAX_CHAIN_LENGTH, MIN_CHAIN_LENGTH, ModelRef, RunRequest
from rosin.output import EventRenderer, save_run_record
from rosin.pipeline import VerificationPipeline
from rosin.resilience import StageFailedError

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    if not verbose:
        # Per-request transport lines would interleave with streamed tokens.
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _determine_chain(config: AppConfig, chain_args: tuple[str, ...], stages: int | None) -> list[ModelRef]:
    """--chain replaces the configured default chain; --stages trims the default."""
    if chain_args and stages is not None:
        raise click.UsageError("--stages cannot be combined with --chain")
    if chain_args:
        return [parse_model_ref(c) for c in chain_args]
    chain = list(config.defaults.chain)
    if stages is not None:
        chain = chain[:stages]
    return chain


def _missing_credentials(chain: list[ModelRef], credentials: Credentials) -> list[str]:
    return sorted({m.provider.value for m in chain if not credentials.has(m.provider)})


async def _run_single(
    request: RunRequest,
    config: AppConfig,
    credentials: Credentials,
    output_dir: Path | None,
) -> int:
    """Run one query, render it live, and return the process exit code."""
    saved: list[Path] = []

    def on_record(record) -> None:
        if output_dir is not None:
            saved.append(save_run_record(record, output_dir))

    pipeline = VerificationPipeline(config, credentials, on_record=on_record)
    renderer = EventRenderer(total_stages=len(request.chain), out=console)

    chain_str = " -> ".join(m.label for m in request.chain)
    query = request.query
    console.print(
        f"\n[bold cyan]Rosin[/bold cyan] | {len(request.chain)} stages"
        + (" [adversarial]" if request.adversarial_mode else "")
    )
    console.print(f"Chain: {chain_str}")
    console.print(f"Query: [italic]{escape(query[:80])}{'...' if len(query) > 80 else ''}[/italic]\n")

    try:
        await pipeline.run(request, renderer)
    except StageFailedError as exc:
        console.print(f"\n[bold red]Error:[/bold red] Verification failed at stage {exc.stage}.")
        return 1

    if saved:
        console.print(f"\n[dim]Saved to: {saved[0]}[/dim]")
    return 0


@click.command()
@click.argument("query", required=False)
@click.option("--file", "query_file", type=click.Path(exists=True), help="Read the query from a text file")
@click.option("--chain", "chain_args", multiple=True,
              help="Stage model as provider:model; repeat 2-4 times in stage order")
@click.option("--stages", type=click.IntRange(MIN_CHAIN_LENGTH, MAX_CHAIN_LENGTH), default=None,
              help="Use the first N models of the default chain (not with --chain)")
@click.option("--adversarial", is_flag=True, help="Middle stages hunt for faults instead of cross-checking")
@click.option("--output", "output_path", default=None, help="Directory for run records (default: from config)")
@click.option("--no-save", is_flag=True, help="Do not write a run record")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    query: str | None,
    query_file: str | None,
    chain_args: tuple[str, ...],
    stages: int | None,
    adversarial: bool,
    output_path: str | None,
    no_save: bool,
    verbose: bool,
) -> None:
    """Rosin -- verify an answer across a chain of LLMs.

    \b
    Examples:
      rosin "What is the capital of France?"
      rosin "Compare REST and GraphQL" --stages 3 --adversarial
      rosin "Explain TCP slow start" --chain anthropic:claude-sonnet-4-5 --chain gemini:gemini-2.5-pro
      rosin --file question.txt
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    if query_file:
        query_text = Path(query_file).read_text(encoding="utf-8").strip()
    elif query:
        query_text = query
    else:
        console.print("[bold red]Error:[/bold red] Provide a QUERY argument or --file.")
        sys.exit(1)

    try:
        chain = _determine_chain(config, chain_args, stages)
        request = RunRequest(query=query_text, chain=chain, adversarial_mode=adversarial)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    credentials = Credentials.from_env(config.providers)
    missing = _missing_credentials(chain, credentials)
    if missing:
        # Not fatal: the executor falls back to another provider for these stages.
        logger.warning("No API key for: %s. Those stages will use fallback models.", ", ".join(missing))

    output_dir = None if no_save else (Path(output_path) if output_path else config.defaults.output_dir)
    sys.exit(asyncio.run(_run_single(request, config, credentials, output_dir)))


if __name__ == "__main__":
    main()
