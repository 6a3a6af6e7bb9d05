"""Rich console rendering of pipeline events and JSON save of finished runs."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from rosin.events import (
    Done,
    PipelineEvent,
    StageComplete,
    StageContent,
    StageError,
    StageRetry,
    StageSkipped,
    StageStart,
    Summary,
)
from rosin.models import ModelRef, RunRecord, VerificationSummary

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _model_label(model: ModelRef) -> str:
    return f"{model.provider.display_name} ({model.model})"


class EventRenderer:
    """Prints a run's events to the terminal as they arrive."""

    def __init__(self, total_stages: int, out: Console | None = None) -> None:
        self._console = out or console
        self._total = total_stages

    def __call__(self, event: PipelineEvent) -> None:
        if isinstance(event, StageStart):
            self._console.print(
                Rule(f"[bold cyan]Stage {event.stage}/{self._total}[/bold cyan] {_model_label(event.model)}")
            )
        elif isinstance(event, StageContent):
            self._console.print(event.content, end="", markup=False, highlight=False, soft_wrap=True)
        elif isinstance(event, StageComplete):
            self._console.print()
            self._console.print(f"[green]OK[/green] Stage {event.stage} complete")
        elif isinstance(event, StageRetry):
            kind = "retrying" if event.attempt == 2 else "falling back to"
            self._console.print()
            self._console.print(
                f"[yellow]Stage {event.stage}: {kind} {_model_label(event.model)} "
                f"(attempt {event.attempt})[/yellow]"
            )
        elif isinstance(event, StageSkipped):
            self._console.print()
            self._console.print(f"[yellow]SKIP[/yellow] Stage {event.stage}: {escape(event.error)}")
        elif isinstance(event, StageError):
            self._console.print()
            self._console.print(f"[bold red]FAIL[/bold red] Stage {event.stage}: {escape(event.error)}")
        elif isinstance(event, Summary):
            print_summary(event.summary, self._console)
        elif isinstance(event, Done):
            self._console.print(Text("Verification complete.", style="dim"))


def print_summary(summary: VerificationSummary, out: Console | None = None) -> None:
    """Print the verification summary, with contradictions when analyzed."""
    out = out or console
    out.print(Rule("[bold green]Verification Summary[/bold green]"))
    source = "consensus analysis" if summary.is_analyzed else "heuristic (analysis unavailable)"
    body = (
        f"[bold]Consistency:[/bold] {escape(summary.consistency)}\n"
        f"[bold]Hallucinations:[/bold] {escape(summary.hallucinations)}\n"
        f"[bold]Confidence:[/bold] {escape(summary.confidence)}"
    )
    out.print(Panel(body, subtitle=source, border_style="dim"))

    if summary.contradictions:
        table = Table(title="Contradictions", show_lines=True)
        table.add_column("Topic", style="bold")
        table.add_column("Stages")
        table.add_column("Description")
        for c in summary.contradictions:
            table.add_row(escape(c.topic), f"{c.stage_a} vs {c.stage_b}", escape(c.description))
        out.print(table)


def save_run_record(record: RunRecord, output_dir: Path) -> Path:
    """Save a finished run as JSON.

    Args:
        record: The completed RunRecord.
        output_dir: Directory to save the file in; created if missing.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(record.query) or record.id}.json"
    filepath.write_text(json.dumps(record.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Run saved to: %s", filepath)
    return filepath
