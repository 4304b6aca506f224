"""
CLI interface for token-lens.

Provides command-line access to the usage and clarity report.
"""

import json
import logging
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from token_lens.cli.render import format_rate, render_report
from token_lens.config.loader import resolve_config
from token_lens.core.aggregator import AggregateOptions
from token_lens.core.analysis import analyze_usage
from token_lens.storage.repository import SessionLogRepository

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_ERROR = 1

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """token-lens: token usage and prompt clarity for Claude Code logs."""
    if ctx.invoked_subcommand is None:
        console.print("token-lens - Use --help to see available commands")


@app.command()
def report(
    days: Optional[int] = typer.Option(
        None,
        "--days",
        "-d",
        min=0,
        help="Only include the last N days (0 = all time)"
    ),
    project: Optional[str] = typer.Option(
        None,
        "--project",
        "-p",
        help="Filter to projects whose name or slug contains this text"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the report as JSON instead of tables"
    ),
    claude_dir: Optional[str] = typer.Option(
        None,
        "--claude-dir",
        help="Claude data directory (default: ~/.claude)"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML config file with defaults and pricing overrides"
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Log discovery and aggregation details to stderr"
    )
):
    """
    Report token usage, cost and prompt clarity.

    This is a read-only operation: logs are re-read on every run and
    nothing is written back.
    """
    _configure_logging(debug)

    try:
        app_config = resolve_config(config)
    except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    # Flags win over config values
    options = AggregateOptions(
        days=days if days is not None else app_config.days,
        project=project if project is not None else app_config.project,
    )
    repository = SessionLogRepository(claude_dir or app_config.claude_dir)
    logger.debug("Reading logs from %s with %s", repository.claude_dir, options)

    if not repository.exists():
        console.print(f"[red]Error:[/] Claude data directory not found: {repository.claude_dir}")
        sys.exit(EXIT_CODE_ERROR)

    result = analyze_usage(options, repository, table=app_config.pricing_table())

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(EXIT_CODE_OK)

    if result.grand.total_tokens == 0:
        console.print("\n[bold yellow]No token data found[/]")
        if options.days or options.project:
            console.print("Try widening --days or removing --project.\n")
        sys.exit(EXIT_CODE_OK)

    render_report(console, result)
    sys.exit(EXIT_CODE_OK)


@app.command()
def pricing(
    model_id: str = typer.Argument(..., help="Model identifier, e.g. claude-sonnet-4-5-20250929"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML config file with pricing overrides"
    )
):
    """Show the pricing family and rates a model id resolves to."""
    try:
        app_config = resolve_config(config)
    except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    rates, found = app_config.pricing_table().resolve(model_id)
    if not found:
        console.print(f"[yellow]{model_id}[/] is unknown: its usage is costed at $0.00")
        sys.exit(EXIT_CODE_OK)

    table = Table(title=f"{model_id} -> {rates.family}")
    table.add_column("Token type")
    table.add_column("USD / 1M tokens", justify="right")
    table.add_row("Input", format_rate(rates.input_per_mtok))
    table.add_row("Output", format_rate(rates.output_per_mtok))
    table.add_row("Cache write", format_rate(rates.cache_write_per_mtok))
    table.add_row("Cache read", format_rate(rates.cache_read_per_mtok))
    console.print(table)
    sys.exit(EXIT_CODE_OK)


if __name__ == "__main__":
    app()
