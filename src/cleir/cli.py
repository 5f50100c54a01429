"""
Command Line Interface for Cleir.

Analyze conversations and business documents, and enrich travel itineraries
with real place data, from the terminal.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cleir import __version__
from cleir.ai.parsing import ItineraryValidationError, extract_itinerary, validate_itinerary
from cleir.config import AppConfig, ConfigurationError, get_config, load_config
from cleir.errors import EnrichmentError, PipelineError
from cleir.models import DetectionResult, EnrichedDay, PersonalTrack, RawInput, SynthesizedReport
from cleir.pipeline import CleirPipeline
from cleir.utils.logging import LogContext, setup_logging

logger = logging.getLogger(__name__)

console = Console()

SEVERITY_STYLES = {
    "safe": "green",
    "green": "green",
    "warning": "yellow",
    "yellow": "yellow",
    "danger": "dark_orange",
    "orange": "dark_orange",
    "critical": "red",
    "red": "red",
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_success(text: str) -> None:
    console.print(f"[bold green]✓[/bold green] {text}")


def print_error(text: str) -> None:
    console.print(f"[bold red]✗[/bold red] {escape(text)}", highlight=False)


def print_json(data: object) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def read_raw_input(text: str | None, image: str | None) -> RawInput:
    """Build a RawInput from CLI options; may raise InvalidInputError."""
    if image:
        return RawInput.from_path(image_path=Path(image), text=text)
    return RawInput(text=text)


def print_report(report: SynthesizedReport) -> None:
    style = SEVERITY_STYLES.get(report.severity, "blue")
    console.print(Panel(report.headline, title=f"{report.track} • {report.severity}", border_style=style))
    console.print(Markdown(report.full_text))

    if report.action_items:
        console.print("\n[bold]Action items[/bold]")
        for i, item in enumerate(report.action_items, start=1):
            console.print(f"  {i}. {item}", highlight=False)


def print_detection(detection: DetectionResult) -> None:
    table = Table(title="Detection")
    table.add_column("Track", style="cyan")
    table.add_column("Confidence", style="green")
    table.add_column("Reasoning")
    table.add_row(detection.track.value, f"{detection.confidence:.0%}", detection.reasoning)
    console.print(table)


def print_enriched_days(days: list[EnrichedDay]) -> None:
    for day in days:
        table = Table(title=f"Day {day.day_number}: {day.title}".strip().rstrip(":"))
        table.add_column("Time")
        table.add_column("Activity", style="cyan")
        table.add_column("Rating", justify="right")
        table.add_column("Link")
        for activity in day.activities:
            rating = f"{activity.rating:.1f}" if activity.rating is not None else "-"
            link = activity.booking_url or "-"
            table.add_row(activity.time or "", activity.title, rating, link)
        console.print(table)


def fail(error: PipelineError) -> None:
    print_error(str(error))
    sys.exit(1)


def _pipeline(ctx: click.Context) -> CleirPipeline:
    if ctx.obj.get("pipeline") is None:
        ctx.obj["pipeline"] = CleirPipeline(ctx.obj["config"])
    return ctx.obj["pipeline"]


# =============================================================================
# MAIN CLI GROUP
# =============================================================================


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--config", "config_path", type=click.Path(), help="Custom config file")
@click.version_option(__version__, prog_name="cleir")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """
    Cleir - see through manipulation, scams and paperwork.

    Analyzes conversations and business documents with Gemini and enriches
    travel itineraries with real place data.
    """
    ctx.ensure_object(dict)

    try:
        config: AppConfig = load_config(Path(config_path)) if config_path else get_config()
    except ConfigurationError as e:
        print_error(f"config: {e}")
        sys.exit(1)

    setup_logging("INFO" if verbose else config.log_level, log_file=config.log_file)
    ctx.obj["config"] = config
    ctx.obj.setdefault("pipeline", None)


# =============================================================================
# ANALYSIS COMMANDS
# =============================================================================


@cli.command()
@click.option("--text", "-t", help="Conversation text")
@click.option("--image", "-i", type=click.Path(exists=True, dir_okay=False), help="Conversation screenshot")
@click.option(
    "--track",
    type=click.Choice([t.value for t in PersonalTrack if t is not PersonalTrack.UNKNOWN]),
    help="Skip detection and use this analysis mode",
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def analyze(ctx: click.Context, text: str | None, image: str | None, track: str | None, output_json: bool) -> None:
    """Analyze a personal conversation for manipulation or scams."""
    try:
        raw = read_raw_input(text, image)
        with LogContext("Analyzing conversation", logger=logger):
            report = _pipeline(ctx).analyze_request(raw, track=track)
    except PipelineError as e:
        fail(e)
        return

    if output_json:
        print_json(report.model_dump(mode="json"))
    else:
        print_report(report)


@cli.command()
@click.option("--text", "-t", help="Document text")
@click.option("--image", "-i", type=click.Path(exists=True, dir_okay=False), help="Document image or PDF")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def document(ctx: click.Context, text: str | None, image: str | None, output_json: bool) -> None:
    """Analyze a business document (visa, contract, scam or trip)."""
    try:
        raw = read_raw_input(text, image)
        with LogContext("Analyzing document", logger=logger):
            result = _pipeline(ctx).analyze_document(raw)
    except PipelineError as e:
        fail(e)
        return

    if output_json:
        print_json(result.model_dump(mode="json"))
    else:
        print_detection(result.detection)
        print_report(result.report)


# =============================================================================
# ITINERARY COMMANDS
# =============================================================================


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--destination", "-d", help="Override the itinerary destination")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def enrich(ctx: click.Context, file: str, destination: str | None, output_json: bool) -> None:
    """Enrich an itinerary with place data.

    FILE holds either itinerary JSON or a model reply with an itinerary
    embedded in it.
    """
    content = Path(file).read_text(encoding="utf-8")
    pipeline = _pipeline(ctx)

    try:
        try:
            payload = json.loads(content)
        except json.JSONDecodeError:
            payload = None

        if payload is not None:
            try:
                itinerary = validate_itinerary(payload)
            except ItineraryValidationError as e:
                raise EnrichmentError(str(e)) from e
        else:
            itinerary, _ = extract_itinerary(content)
            if itinerary is None:
                raise EnrichmentError("No itinerary found in file")

        with LogContext(f"Enriching {len(itinerary.days)} itinerary days", logger=logger):
            days = pipeline.enrich_itinerary(destination or itinerary.destination or None, itinerary.days)
    except PipelineError as e:
        fail(e)
        return

    if output_json:
        print_json([d.model_dump(mode="json") for d in days])
        return

    print_enriched_days(days)
    resolved = sum(1 for d in days for a in d.activities if a.is_resolved)
    total = sum(len(d.activities) for d in days)
    print_success(f"Enriched {resolved}/{total} activities")


# =============================================================================
# CONFIG COMMANDS
# =============================================================================


@cli.group()
def config() -> None:
    """Inspect configuration."""


@config.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Show the active settings."""
    settings: AppConfig = ctx.obj["config"]

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in settings.to_display_dict().items():
        table.add_row(key, str(value))
    console.print(table)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
