"""Command-line interface for the ensemble engine.

Built with Typer; global options configure logging before any command runs.

Package structure:
    cli/
    ├── __init__.py      # App assembly
    ├── helpers.py       # Logging state, config loading, JSONL parsing
    ├── output.py        # Rich tables and JSON output
    └── commands/
        ├── replay.py    # replay command
        ├── report.py    # report command
        └── config_cmd.py  # config-show command
"""

from __future__ import annotations

from typing import Annotated

import typer

from ensemblescore import __version__

from . import helpers as helpers
from .commands import config_show, replay, report
from .helpers import configure_global_logging, set_log_format, set_log_level
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="ensemblescore",
    help="Adaptive ensemble scoring and continuous learning engine",
    add_completion=False,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"ensemblescore v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    """Set log level from CLI option."""
    if value:
        set_log_level(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    """Set log format from CLI option."""
    if value:
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="ENSEMBLESCORE_LOG_LEVEL",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json or console",
            envvar="ENSEMBLESCORE_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """ensemblescore - adaptive ensemble scoring for improvement suggestions."""
    configure_global_logging(console)


# =============================================================================
# Command registration
# =============================================================================

app.command()(replay)
app.command()(report)
app.command(name="config-show")(config_show)


__all__ = ["app", "console", "main"]
