"""CLI for records-recon: scan / retry commands."""

from __future__ import annotations

import asyncio
import base64
import json
from pathlib import Path
from typing import AsyncIterator, List, Optional

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from records_recon.core.config import AppSettings, LLMConfig, ObservabilityConfig
from records_recon.events import (
    CompleteEvent,
    ErrorEvent,
    FileReadyEvent,
    KeywordFlagEvent,
    ProgressEvent,
    ScanCacheEvent,
)
from records_recon.formatters import JSONFormatter
from records_recon.hooks import setup_logging
from records_recon.models import DocumentPayload, FinalReport, InterimReport, RetryRequest
from records_recon.pipeline.driver import ReconPipeline

app = typer.Typer(name="records-recon", help="Organize medical records into a citation-backed condition index")
console = Console()


def _build_settings(
    base_url: Optional[str],
    api_key: Optional[str],
    model: Optional[str],
    verbose: bool,
) -> AppSettings:
    """Build settings, overriding env defaults with CLI flags."""
    llm_overrides: dict = {}
    if base_url:
        llm_overrides["base_url"] = base_url
    if api_key:
        llm_overrides["api_key"] = api_key
    if model:
        llm_overrides["extract_model"] = model
    settings = AppSettings()
    if llm_overrides:
        settings.llm = LLMConfig(**{**settings.llm.model_dump(), **llm_overrides})
    if verbose:
        settings.observability = ObservabilityConfig(
            **{**settings.observability.model_dump(), "log_level": "DEBUG"}
        )
    return settings


def _load_document(path: Path) -> DocumentPayload:
    raw = path.read_bytes()
    media_type = "application/pdf" if path.suffix.lower() == ".pdf" else "application/octet-stream"
    return DocumentPayload(
        name=path.name,
        type=media_type,
        data=base64.b64encode(raw).decode("ascii"),
        size=len(raw),
    )


def _render_report(report: FinalReport | InterimReport) -> None:
    if report.is_interim:
        console.print(f"[yellow]Interim report:[/yellow] {report.note}")
    elif report.note:
        console.print(f"[dim]{report.note}[/dim]")
    console.print(f"\n[bold]{report.summary}[/bold]")

    if report.conditions_index:
        table = Table(title="Conditions")
        table.add_column("Condition", style="cyan")
        table.add_column("Category", style="green")
        table.add_column("Mentions", justify="right")
        table.add_column("Pages")
        table.add_column("First mention")
        for entry in report.conditions_index:
            table.add_row(
                entry.condition,
                entry.category,
                str(entry.mention_count),
                ", ".join(str(p) for p in entry.pages_found),
                entry.first_mention_date or "",
            )
        console.print(table)

    details = report.processing_details
    console.print(
        f"\n{details.files_processed} file(s), {details.processing_time_ms} ms, "
        f"structuring: {details.structuring_source}"
    )


async def _consume(events: AsyncIterator[BaseModel], cache: Optional[Path]) -> CompleteEvent | ErrorEvent | None:
    terminal: CompleteEvent | ErrorEvent | None = None
    with console.status("Starting...") as status:
        async for event in events:
            if isinstance(event, ProgressEvent):
                status.update(f"[{event.percent:>3}%] {event.message}")
            elif isinstance(event, FileReadyEvent):
                console.print(
                    f"[green]{event.file_name}[/green]: {event.page_count} pages, "
                    f"kept {event.kept_paragraphs}/{event.total_paragraphs} paragraphs "
                    f"({event.reduction_pct}% reduction)"
                )
            elif isinstance(event, KeywordFlagEvent):
                console.print(f"  flag [cyan]{event.condition}[/cyan] ({event.confidence})")
            elif isinstance(event, ScanCacheEvent):
                if cache:
                    JSONFormatter().format_to_file(event, cache)
                    console.print(f"[dim]Scan cache saved to {cache}[/dim]")
            elif isinstance(event, (CompleteEvent, ErrorEvent)):
                terminal = event
    return terminal


def _finish(terminal: CompleteEvent | ErrorEvent | None, output: Optional[Path]) -> None:
    if isinstance(terminal, ErrorEvent):
        console.print(f"[red]Error ({terminal.phase or 'unknown'}):[/red] {terminal.message}")
        raise typer.Exit(code=1)
    if terminal is None:
        console.print("[red]Stream ended without a result[/red]")
        raise typer.Exit(code=1)

    _render_report(terminal.report)
    if output:
        JSONFormatter().format_to_file(terminal.report, output)
        console.print(f"[green]Report saved to {output}[/green]")


@app.command()
def scan(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Documents to scan"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report JSON here"),
    cache: Optional[Path] = typer.Option(None, "--cache", help="Write the scan cache JSON here for later retry"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="LLM base URL"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="LLM API key"),
    model: Optional[str] = typer.Option(None, "--model", help="Extraction model name"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Scan documents and build a condition index."""
    settings = _build_settings(base_url, api_key, model, verbose)
    setup_logging(settings.observability)

    documents = [_load_document(path) for path in files]
    console.print(f"[bold]Scanning {len(documents)} document(s)[/bold]")

    pipeline = ReconPipeline(settings)
    terminal = asyncio.run(_consume(pipeline.run(documents), cache))
    _finish(terminal, output)


@app.command()
def retry(
    cache_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Scan cache JSON from a previous scan"),
    reduced_cap: bool = typer.Option(False, "--reduced-cap", help="Cut the corpus to the smaller retry budget"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report JSON here"),
    base_url: Optional[str] = typer.Option(None, "--base-url"),
    api_key: Optional[str] = typer.Option(None, "--api-key"),
    model: Optional[str] = typer.Option(None, "--model"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Re-run extraction over a cached corpus without re-uploading."""
    settings = _build_settings(base_url, api_key, model, verbose)
    setup_logging(settings.observability)

    try:
        cached = ScanCacheEvent.model_validate(json.loads(cache_file.read_text(encoding="utf-8")))
    except (ValueError, TypeError) as exc:
        raise typer.BadParameter(f"{cache_file} is not a scan cache: {exc}") from exc

    request = RetryRequest(
        corpus=cached.corpus,
        keyword_flags=cached.keyword_flags,
        synopsis=cached.synopsis,
        file_names=cached.file_names,
        use_reduced_cap=reduced_cap,
    )
    console.print(f"[bold]Retrying extraction on {len(request.corpus)} cached chars[/bold]")

    pipeline = ReconPipeline(settings)
    terminal = asyncio.run(_consume(pipeline.retry(request), None))
    _finish(terminal, output)


if __name__ == "__main__":
    app()
