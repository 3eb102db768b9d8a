"""Environment-driven configuration helpers for the line scheduler."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

_TRUTHY = {"1", "true", "yes", "on"}


@lru_cache(maxsize=None)
def get_log_verbosity() -> str:
    """Return the configured log verbosity (``debug``/``info``/``warning``/...)."""

    return os.getenv("LINE_SCHEDULER_LOG_VERBOSITY", "info").lower()


@lru_cache(maxsize=None)
def get_default_seed() -> Optional[int]:
    """Return the seed used when a run does not pass one explicitly.

    ``LINE_SCHEDULER_SEED`` makes every optimizer created without an explicit
    seed reproducible, which is handy for benchmark and CI runs.
    """

    raw = os.getenv("LINE_SCHEDULER_SEED")
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"LINE_SCHEDULER_SEED must be an integer, got {raw!r}") from e


@lru_cache(maxsize=None)
def evolution_logging_enabled() -> bool:
    return os.getenv("LINE_SCHEDULER_EVOLUTION_LOGGING", "1").lower() in _TRUTHY


__all__ = [
    "get_log_verbosity",
    "get_default_seed",
    "evolution_logging_enabled",
]
