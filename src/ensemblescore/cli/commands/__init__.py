"""CLI command implementations."""

from .config_cmd import config_show
from .replay import replay
from .report import report

__all__ = ["config_show", "replay", "report"]
