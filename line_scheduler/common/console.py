"""Helpers for constructing Rich consoles with environment-driven verbosity."""

from __future__ import annotations

from typing import Any, Optional

from rich.console import Console

from .settings import get_log_verbosity

_SILENT_KWARGS = {
    "quiet": True,
    "highlight": False,
    "markup": False,
    "emoji": False,
    "color_system": None,
    "soft_wrap": True,
}

_VERBOSE_KWARGS = {"soft_wrap": True}


def get_console(level: Optional[str] = None, **kwargs: Any) -> Console:
    """Return a Rich ``Console`` configured for the requested verbosity.

    The console respects ``LINE_SCHEDULER_LOG_VERBOSITY`` so benchmarks and other
    non-interactive tooling can disable rich rendering when the verbosity is
    set to ``warning``/``error``/``quiet``.

    Args:
        level: Optional verbosity override (``debug``/``info``/... ). When not
            provided the value returned by :func:`get_log_verbosity` is used.
        **kwargs: Additional keyword arguments forwarded to ``Console``.
    """

    verbosity = (level or get_log_verbosity()).lower()
    base_kwargs = _VERBOSE_KWARGS if verbosity in {"debug", "info"} else _SILENT_KWARGS
    config = {**base_kwargs, **kwargs}
    return Console(**config)


__all__ = ["get_console"]
