"""
Command Line Interface for the Journal Pattern Reflection Engine.

Runs the engine against a JSON export of journal entries, so the pipeline
can be exercised without the web application around it.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from journal_patterns import __version__
from journal_patterns.ai.analyzer import ReflectionEngine, build_debug_meta
from journal_patterns.ai.prompts import build_prompt_request
from journal_patterns.config import (
    APIKeyManager,
    AppConfig,
    ConfigError,
    get_config,
    load_config,
)
from journal_patterns.core.eligibility import check_eligibility, describe_time_range, sort_entries
from journal_patterns.core.models import JournalEntry, PatternsResult
from journal_patterns.utils.logging import setup_logging

logger = logging.getLogger(__name__)

console = Console()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_success(text: str) -> None:
    console.print(f"[bold green]✓[/bold green] {text}")


def print_warning(text: str) -> None:
    console.print(f"[bold yellow]⚠[/bold yellow] {text}")


def print_error(text: str) -> None:
    console.print(f"[bold red]✗[/bold red] {escape(text)}")


def load_entries(path: Path) -> list[JournalEntry]:
    """Read entries from a JSON array, or an object with an ``entries`` array.

    Raises:
        click.BadParameter: If the file is not valid JSON or any entry is
            malformed. Entry content is never echoed back.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON (line {e.lineno})", param_hint="ENTRIES_JSON") from e

    if isinstance(data, dict):
        data = data.get("entries")
    if not isinstance(data, list):
        raise click.BadParameter("expected a JSON array of entries", param_hint="ENTRIES_JSON")

    entries: list[JournalEntry] = []
    for index, row in enumerate(data):
        try:
            entries.append(JournalEntry.model_validate(row))
        except ValidationError as e:
            fields = ", ".join(sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]}))
            raise click.BadParameter(
                f"entry {index} is invalid ({fields or 'not an object'})",
                param_hint="ENTRIES_JSON",
            ) from e
    return entries


def print_result(result: PatternsResult) -> None:
    if not result.ok:
        print_error(result.error.message)
        return

    value = result.value
    if value.should_speak:
        console.print(Panel(escape(value.reflection or ""), title=value.time_range, border_style="green"))
        if value.themes:
            console.print(f"Themes: {escape(', '.join(value.themes))}")
    else:
        print_warning("Nothing to reflect on yet.")

    if result.debug is not None:
        table = Table(title="Debug")
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        for key, item in result.debug.to_wire().items():
            # The output preview paraphrases journal text; show its length only.
            if key == "outputPreview":
                item = f"<{len(item)} chars>"
            table.add_row(key, escape(str(item)))
        console.print(table)

    if result.cache_meta is not None:
        console.print(f"[dim]Served from cache ({result.cache_meta.age_seconds}s old)[/dim]")


# =============================================================================
# CLI GROUP
# =============================================================================


@click.group()
@click.version_option(__version__, prog_name="journal-patterns")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--debug", is_flag=True, help="Include debug details in results")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Custom config file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, config_path: Path | None) -> None:
    """
    Journal Pattern Reflection Engine.

    Reflects sustained patterns across journal entries using Gemini.
    """
    try:
        config = load_config(config_path) if config_path else get_config()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    setup_logging(
        level="DEBUG" if verbose else config.logging.level,
        log_file=config.logging.log_file,
        quiet_third_party=config.logging.quiet_third_party,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["debug"] = debug or config.debug


# =============================================================================
# REFLECT COMMAND
# =============================================================================


@cli.command()
@click.argument("entries_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--user-id", default="local", show_default=True, help="Cache slot owner")
@click.option("--debug", "debug_flag", is_flag=True, help="Include debug details")
@click.option("--refresh", is_flag=True, help="Ignore a cached result")
@click.option("--json", "output_json", is_flag=True, help="Output the wire payload as JSON")
@click.option("--dry-run", is_flag=True, help="Show the prompt without calling Gemini")
@click.pass_context
def reflect(
    ctx: click.Context,
    entries_json: Path,
    user_id: str,
    debug_flag: bool,
    refresh: bool,
    output_json: bool,
    dry_run: bool,
) -> None:
    """
    Reflect on the entries in ENTRIES_JSON.

    Example:
        journal-patterns reflect entries.json --debug
    """
    config: AppConfig = ctx.obj["config"]
    debug = debug_flag or ctx.obj["debug"]
    entries = load_entries(entries_json)

    if dry_run:
        ordered = sort_entries(entries)
        decision = check_eligibility(ordered)
        if not decision.eligible:
            print_warning(f"Gate would stay silent: {decision.reason.value}")
            return
        request = build_prompt_request(ordered)
        console.print(Panel(escape(request.system_instruction), title="System instruction", border_style="blue"))
        console.print(Panel(escape(request.user_text), title="User text", border_style="cyan"))
        return

    engine = ReflectionEngine(config=config)
    result = engine.reflect(user_id, entries, debug=debug, refresh=refresh)

    if output_json:
        click.echo(json.dumps(result.to_payload(), ensure_ascii=False))
    else:
        print_result(result)

    if not result.ok:
        sys.exit(1)


# =============================================================================
# CHECK COMMAND
# =============================================================================


@cli.command()
@click.argument("entries_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(entries_json: Path) -> None:
    """Run only the longitudinal gate on ENTRIES_JSON."""
    ordered = sort_entries(load_entries(entries_json))
    decision = check_eligibility(ordered)
    counts = build_debug_meta(ordered)

    table = Table(title="Eligibility")
    table.add_column("Check", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Entries", str(counts.total_count))
    table.add_row("Vent entries", str(counts.vent_count))
    table.add_row("Non-vent entries", str(decision.entries_count))
    table.add_row("Non-vent span (days)", "-" if decision.span_days is None else str(decision.span_days))
    table.add_row("Time range", describe_time_range(decision.span_days))
    console.print(table)

    if decision.eligible:
        print_success("Eligible for a reflection")
    else:
        print_warning(f"Not eligible: {decision.reason.value}")


# =============================================================================
# CONFIG GROUP
# =============================================================================


@cli.group()
def config() -> None:
    """Manage configuration settings."""


@config.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Display the effective configuration."""
    cfg: AppConfig = ctx.obj["config"]
    manager = APIKeyManager()
    key_status = "configured" if manager.get_key() is not None else "not configured"

    rows: list[tuple[str, Any]] = [
        ("ai.model_name", cfg.ai.model_name or "(auto)"),
        ("ai.default_model", cfg.ai.default_model),
        ("ai.temperature", cfg.ai.temperature),
        ("ai.max_output_tokens", cfg.ai.max_output_tokens),
        ("cache.ttl_seconds", cfg.cache.ttl_seconds),
        ("logging.level", cfg.logging.level),
        ("debug", cfg.debug),
        ("api_key", f"{key_status} ({manager.get_key_source()})"),
    ]

    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in rows:
        table.add_row(key, str(value))
    console.print(table)


@config.command("set-key")
def set_key() -> None:
    """Store the Gemini API key in the system keyring."""
    api_key = click.prompt("Enter your Gemini API key", hide_input=True)
    try:
        APIKeyManager().store_key(api_key)
    except ConfigError as e:
        print_error(str(e))
        sys.exit(1)
    print_success("API key stored in system keyring")


def main() -> None:
    """Entry point for the console script."""
    cli()


if __name__ == "__main__":
    main()
