"""CLI interface for daybrief."""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from daybrief.config import load_config, merge_cli_overrides
from daybrief.digest.errors import DigestError
from daybrief.digest.models import ContentItem, DigestContext
from daybrief.digest.orchestrator import DigestOrchestrator, DigestRun, split_into_batches
from daybrief.digest.tokens import get_token_stats
from daybrief.llm import make_completer

app = typer.Typer(
    name="daybrief",
    help="Turn a day of saved content summaries into one narrated digest.",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from daybrief import __version__

        console.print(f"daybrief {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Daybrief - narrated daily digests."""
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_items(path: Path) -> list[ContentItem]:
    """Read a JSON array of content items."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]Could not read {path}: {escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc

    if not isinstance(raw, list):
        console.print(f"[red]{path} must contain a JSON array of items[/red]")
        raise typer.Exit(1)

    try:
        return [ContentItem.model_validate(entry) for entry in raw]
    except ValidationError as exc:
        console.print(f"[red]Invalid content item in {path}:[/red]\n{escape(str(exc))}")
        raise typer.Exit(1) from exc


@app.command()
def generate(
    items_file: Annotated[
        Path,
        typer.Argument(help="JSON file with an array of content items."),
    ],
    digest_date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="Digest date (YYYY-MM-DD). Defaults to today."),
    ] = None,
    spotlight: Annotated[
        Optional[str],
        typer.Option("--spotlight", help="Cluster slug to lead the digest with."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output directory for the digest file."),
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="Claude model (sonnet, haiku, opus or a model ID)."),
    ] = None,
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .daybrief.toml file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
) -> None:
    """Generate a narrated digest from content summaries."""
    _configure_logging(verbose)

    try:
        day = date.fromisoformat(digest_date) if digest_date else date.today()
    except ValueError as exc:
        console.print(f"[red]Invalid --date {digest_date!r}; expected YYYY-MM-DD[/red]")
        raise typer.Exit(1) from exc

    config = merge_cli_overrides(
        load_config(config_file),
        model=model,
        spotlight_slug=spotlight,
        output_directory=str(output) if output else None,
    )
    items = _load_items(items_file)

    try:
        templates = config.to_templates()
    except OSError as exc:
        console.print(f"[red]Could not read prompt template: {escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc

    try:
        orchestrator = DigestOrchestrator(
            make_completer(
                system_prompt=config.llm.system_prompt,
                model=config.llm.model,
                timeout=config.llm.timeout,
            ),
            templates=templates,
            settings=config.to_settings(),
        )
    except DigestError as exc:
        console.print(f"[red]Invalid prompt template ({exc.stage}):[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    context = DigestContext(
        digest_date=day,
        spotlight_slug=config.digest.spotlight_slug or None,
    )

    run = DigestRun()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(
                f"Generating digest for {day.isoformat()} ({len(items)} items)...", total=None
            )
            digest = orchestrator.generate_digest(items, context, run=run)
    except DigestError as exc:
        console.print(f"[red]Digest generation failed ({exc.stage}):[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    out_dir = Path(config.output.directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"digest-{day.isoformat()}.md"
    out_path.write_text(digest + "\n", encoding="utf-8")

    console.print(
        f"[green]Digest written to {out_path}[/green] "
        f"({run.batch_count} batches, {run.beat_count} beats, {run.cluster_count} clusters)"
    )


@app.command()
def plan(
    items_file: Annotated[
        Path,
        typer.Argument(help="JSON file with an array of content items."),
    ],
    max_tokens_per_batch: Annotated[
        Optional[int],
        typer.Option("--max-tokens", help="Token budget per map batch."),
    ] = None,
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .daybrief.toml file."),
    ] = None,
) -> None:
    """Show how items would be batched, without calling the model."""
    config = merge_cli_overrides(
        load_config(config_file), max_tokens_per_batch=max_tokens_per_batch
    )
    settings = config.to_settings()
    items = _load_items(items_file)

    if not items:
        console.print("[yellow]No items to batch.[/yellow]")
        return

    batches = split_into_batches(items, settings)

    console.print(
        f"[bold]Map batches[/bold] (budget {settings.max_tokens_per_batch} tokens, "
        f"{len(batches)} batch(es))"
    )
    for index, batch in enumerate(batches, start=1):
        stats = get_token_stats([item.summary for item in batch], settings.chars_per_token)
        titles = ", ".join(item.title or item.source.display_name for item in batch)
        console.print(
            f"  {index}. {len(batch)} item(s), ~{stats.total_tokens} tokens: {escape(titles)}"
        )

    overall = get_token_stats([item.summary for item in items], settings.chars_per_token)
    console.print(
        f"{overall.count} items, ~{overall.total_tokens} tokens "
        f"(avg {overall.avg_tokens}, min {overall.min_tokens}, max {overall.max_tokens})"
    )


if __name__ == "__main__":
    app()
