"""Tests for rosin/output.py."""

import json
from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from rosin.events import Done, StageComplete, StageContent, StageError, StageRetry, StageSkipped, StageStart, Summary
from rosin.models import Contradiction, RunRecord, StageResult, StageStatus, VerificationSummary
from rosin.output import EventRenderer, _slug, print_summary, save_run_record
from tests.conftest import CLAUDE, GEMINI_FLASH, GPT


def _console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, width=120, color_system=None), buffer


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    long_text = "a" * 100
    assert len(_slug(long_text)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


@pytest.fixture
def sample_record() -> RunRecord:
    return RunRecord(
        query="What is the capital of France?",
        chain=[CLAUDE, GPT],
        stages=[
            StageResult(stage=1, model=CLAUDE, content="Paris.", status=StageStatus.COMPLETE),
            StageResult(stage=2, model=GPT, content="Paris [verified].", status=StageStatus.COMPLETE),
        ],
        summary=VerificationSummary(consistency="Agree", hallucinations="None", confidence="Moderate"),
    )


def test_save_run_record_creates_json(tmp_path: Path, sample_record: RunRecord):
    saved = save_run_record(sample_record, tmp_path / "nested" / "output")
    assert saved.exists()
    assert saved.suffix == ".json"
    assert "what-is-the-capital-of-france" in saved.name


def test_save_run_record_content(tmp_path: Path, sample_record: RunRecord):
    data = json.loads(save_run_record(sample_record, tmp_path).read_text(encoding="utf-8"))
    assert data["id"] == sample_record.id
    assert data["stages"][1]["content"] == "Paris [verified]."
    assert data["summary"]["confidence"] == "Moderate"


def test_save_run_record_slugless_query_uses_id(tmp_path: Path, sample_record: RunRecord):
    sample_record.query = "???"
    saved = save_run_record(sample_record, tmp_path)
    assert sample_record.id in saved.name


def test_renderer_prints_stream(sample_record: RunRecord):
    out, buffer = _console()
    render = EventRenderer(total_stages=2, out=out)

    for event in [
        StageStart(stage=1, model=CLAUDE),
        StageContent(stage=1, content="[bold]Par"),
        StageContent(stage=1, content="is[/bold]"),
        StageComplete(stage=1),
        StageRetry(stage=2, model=GPT, attempt=2),
        StageRetry(stage=2, model=GEMINI_FLASH, attempt=3),
        StageSkipped(stage=2, error="[Gemini] down"),
        Summary(summary=sample_record.summary),
        Done(),
    ]:
        render(event)

    text = buffer.getvalue()
    assert "Stage 1/2" in text
    assert "Anthropic (claude-sonnet-4-5)" in text
    assert "[bold]Paris[/bold]" in text
    assert "retrying OpenAI (gpt-4o)" in text
    assert "falling back to Gemini (gemini-2.5-flash)" in text
    assert "SKIP" in text
    assert "Verification Summary" in text
    assert "Verification complete." in text


def test_renderer_prints_fatal_error():
    out, buffer = _console()
    EventRenderer(total_stages=3, out=out)(StageError(stage=3, error="[OpenAI] API error (500): boom"))
    assert "FAIL" in buffer.getvalue()
    assert "API error (500)" in buffer.getvalue()


def test_print_summary_with_contradictions():
    out, buffer = _console()
    summary = VerificationSummary(
        consistency="Mostly agree",
        hallucinations="One unsupported date",
        confidence="Moderate (60%)",
        confidence_score=0.6,
        contradictions=[Contradiction("Moon landing", 1, 2, "1969 vs 1970")],
        is_analyzed=True,
    )
    print_summary(summary, out)
    text = buffer.getvalue()
    assert "consensus analysis" in text
    assert "Contradictions" in text
    assert "1 vs 2" in text
    assert "Moderate (60%)" in text


def test_print_summary_heuristic_has_no_table():
    out, buffer = _console()
    print_summary(VerificationSummary(consistency="c", hallucinations="h", confidence="Low"), out)
    text = buffer.getvalue()
    assert "heuristic" in text
    assert "Contradictions" not in text
