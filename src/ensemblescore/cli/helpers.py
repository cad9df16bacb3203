"""Shared CLI helpers: logging state, config loading, feedback file parsing."""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console

from ensemblescore.core.config import EngineConfig, LogConfig
from ensemblescore.core.logging import configure_logging

# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """CLI logging options collected from global flags."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    format: Literal["json", "console"] = "console"
    level_from_flag: bool = False
    format_from_flag: bool = False
    configured: bool = False


_log_config = CliLoggingConfig()


def set_log_level(level: str) -> None:
    """Set the log level (DEBUG, INFO, WARNING, ERROR)."""
    _log_config.level = level.upper()  # type: ignore[assignment]
    _log_config.level_from_flag = True


def set_log_format(fmt: str) -> None:
    """Set the log format (json, console)."""
    _log_config.format = fmt.lower()  # type: ignore[assignment]
    _log_config.format_from_flag = True


def configure_global_logging(console: Console) -> None:
    """Configure logging from the global CLI options, once per session.

    Raises:
        typer.Exit: If the options are invalid.
    """
    if _log_config.configured:
        return
    if _log_config.level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        console.print(f"[red]Invalid log level:[/red] {_log_config.level}")
        raise typer.Exit(1)
    if _log_config.format not in ("json", "console"):
        console.print(f"[red]Invalid log format:[/red] {_log_config.format}")
        raise typer.Exit(1)
    configure_logging(level=_log_config.level, format=_log_config.format)
    _log_config.configured = True


def apply_config_logging(log_config: LogConfig) -> None:
    """Reconfigure logging from a loaded config file's ``logging`` section.

    Explicit --log-level/--log-format flags still win over the file.
    """
    settings = log_config.model_dump()
    if _log_config.level_from_flag:
        settings["level"] = _log_config.level
    if _log_config.format_from_flag:
        settings["format"] = _log_config.format
    configure_logging(**settings)
    _log_config.configured = True


def reset_logging_state() -> None:
    """Reset CLI logging state (primarily for testing)."""
    _log_config.level = "WARNING"
    _log_config.format = "console"
    _log_config.level_from_flag = False
    _log_config.format_from_flag = False
    _log_config.configured = False


# =============================================================================
# Inputs
# =============================================================================


def load_engine_config(path: Path | None, console: Console) -> EngineConfig:
    """Load EngineConfig from YAML, or defaults when no path is given.

    A file with a ``logging`` section also reconfigures logging from it.

    Raises:
        typer.Exit: If the file cannot be read or fails validation.
    """
    if path is None:
        return EngineConfig()
    try:
        engine_config = EngineConfig.from_yaml(path)
    except FileNotFoundError:
        console.print(f"[red]Config file not found:[/red] {path}")
        raise typer.Exit(1) from None
    except (yaml.YAMLError, ValidationError) as e:
        console.print(f"[red]Invalid config {path}:[/red] {e}")
        raise typer.Exit(1) from None
    if "logging" in engine_config.model_fields_set:
        apply_config_logging(engine_config.logging)
    return engine_config


def iter_feedback_events(path: Path) -> Iterator[tuple[int, dict[str, Any] | None, str | None]]:
    """Yield (line_number, event, parse_error) for each non-blank JSONL line."""
    with open(path, encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            stripped = line.strip()
            if not stripped:
                continue
            try:
                event = json.loads(stripped)
            except json.JSONDecodeError as e:
                yield line_number, None, f"invalid JSON: {e.msg}"
                continue
            if not isinstance(event, dict):
                yield line_number, None, "event must be a JSON object"
                continue
            yield line_number, event, None
