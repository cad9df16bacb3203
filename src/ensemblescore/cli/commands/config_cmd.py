"""Config command: show the effective engine configuration."""

from __future__ import annotations

from pathlib import Path

import typer

from ..helpers import load_engine_config
from ..output import console, print_json


def config_show(
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Engine configuration YAML (defaults when omitted)",
    ),
) -> None:
    """Print the effective engine configuration as JSON."""
    engine_config = load_engine_config(config, console)
    print_json(engine_config.model_dump(mode="json"))
