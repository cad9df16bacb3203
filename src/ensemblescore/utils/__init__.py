"""Shared utilities for the ensemble engine.

Contains cross-cutting utilities used by multiple modules.
"""

from ensemblescore.utils.time import utc_now

__all__ = ["utc_now"]
