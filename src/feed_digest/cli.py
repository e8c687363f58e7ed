"""Command-line entry points for the feed digest pipeline."""

import json
import logging
from pathlib import Path
from typing import Optional

import openai
import typer
from pydantic import ValidationError
from rich import print as rprint
from rich.logging import RichHandler
from rich.markup import escape

from .batching import batches_for_settings
from .config import Settings, get_settings
from .errors import DigestError
from .loader import load_articles
from .models import Fact
from .pipeline import summarize_articles

app = typer.Typer(help="Summarize exported news-feed articles into one executive brief.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=False, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_settings(**overrides) -> Settings:
    cleaned = {key: value for key, value in overrides.items() if value is not None}
    try:
        return get_settings(**cleaned)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _failure_message(exc: BaseException) -> str:
    notes = getattr(exc, "__notes__", None)
    if not notes:
        return str(exc)
    return f"{exc} (" + "; ".join(notes) + ")"


def _write_facts(path: Path, facts: list[Fact]) -> None:
    path.write_text(
        json.dumps([fact.to_payload() for fact in facts], ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


@app.command("summarize")
def summarize_command(
    input_path: Path = typer.Argument(
        Path("feedbin_articles.json"),
        help="Article export (.json array or .csv with url, published, extractedContent).",
    ),
    out: Path = typer.Option(
        Path("feedbin_summary.md"), "--out", "-o", help="Where to write the Markdown report."
    ),
    facts_out: Optional[Path] = typer.Option(
        None, "--facts-out", help="Optional path to dump the extracted facts as JSON."
    ),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model identifier."),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", help="Extraction requests in flight."
    ),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", help="Facts per chunk brief in the reduce step."
    ),
    max_input_tokens: Optional[int] = typer.Option(None, "--max-input-tokens"),
    max_output_tokens: Optional[int] = typer.Option(None, "--max-output-tokens"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
):
    """
    Extract facts from every article and reduce them into one report.

    The report file is only written when the whole run succeeds.
    """
    _configure_logging(verbose)
    settings = _load_settings(
        model=model,
        request_concurrency=concurrency,
        reduce_chunk_size=chunk_size,
        max_input_tokens=max_input_tokens,
        max_output_tokens=max_output_tokens,
    )
    try:
        articles = load_articles(input_path)
        result = summarize_articles(articles, settings)
    except (DigestError, openai.OpenAIError) as exc:
        rprint(f"[red]Summarization failed: {escape(_failure_message(exc))}[/red]")
        raise typer.Exit(code=1)

    out.write_text(result.report, encoding="utf-8")
    rprint(f"[green]Wrote final summary: {out}[/green]")
    if facts_out:
        _write_facts(facts_out, result.facts)
        rprint(f"[cyan]Wrote {len(result.facts)} facts to {facts_out}[/cyan]")


@app.command("batches")
def batches_command(
    input_path: Path = typer.Argument(
        Path("feedbin_articles.json"), help="Article export (.json or .csv)."
    ),
    max_input_tokens: Optional[int] = typer.Option(None, "--max-input-tokens"),
    max_output_tokens: Optional[int] = typer.Option(None, "--max-output-tokens"),
):
    """Show how articles would be batched, without calling the model."""
    settings = _load_settings(
        max_input_tokens=max_input_tokens, max_output_tokens=max_output_tokens
    )
    try:
        articles = load_articles(input_path)
    except DigestError as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)

    batches = batches_for_settings(articles, settings)
    for batch in batches:
        rprint(f"batch {batch.index}: {len(batch)} articles, ~{batch.estimated_tokens} tokens")
    rprint(f"[cyan]{len(articles)} articles in {len(batches)} batches.[/cyan]")


def main():
    app()


if __name__ == "__main__":
    main()
