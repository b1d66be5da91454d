"""Diagnostic logging through femtologging.

Adapters and flows log what they ask AWS, kubectl and helm to do. Output
meant for the operator goes through :mod:`opskit.console` instead, so the
default ``INFO`` level stays quiet unless a call misbehaves.

Example:
>>> from opskit.logging import get_logger, log_debug
>>> logger = get_logger(__name__)
>>> log_debug(logger, "Calling %s.%s", "s3", "head_bucket")

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger

DEFAULT_LEVEL = "INFO"


class LogLevel(enum.StrEnum):
    """Levels accepted in ``OPSKIT_LOG_LEVEL``."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_ALIASES = {"WARN": LogLevel.WARNING, "FATAL": LogLevel.CRITICAL}


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return the canonical level name and whether ``level`` was rejected.

    ``WARN`` and ``FATAL`` are accepted as aliases. An empty or unknown
    value falls back to ``INFO`` and is reported as invalid.
    """
    normalized = (level or "").strip().upper()
    if normalized in _ALIASES:
        return (_ALIASES[normalized].value, False)
    if normalized in LogLevel.__members__:
        return (normalized, False)
    return (DEFAULT_LEVEL, True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Install the femtologging root handler at ``level``.

    Parameters
    ----------
    level : str
        Level name from the environment.
    force : bool, optional
        Replace a handler configured earlier in the process. The CLI passes
        ``True`` so repeated in-process invocations pick up a new level.

    Returns
    -------
    tuple[str, bool]
        The level actually applied and whether ``level`` was rejected.

    """
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


class _SupportsLog(typ.Protocol):
    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def _emit(
    logger: _SupportsLog,
    level: LogLevel,
    template: str,
    args: tuple[object, ...],
    exc_info: object | None = None,
) -> None:
    # femtologging takes finished strings; a bare template is not
    # interpolated so literal percent signs survive.
    message = template % args if args else template
    logger.log(level.value, message, exc_info=exc_info, stack_info=False)


def log_debug(logger: _SupportsLog, template: str, *args: object) -> None:
    """Log a DEBUG message with percent-style formatting."""
    _emit(logger, LogLevel.DEBUG, template, args)


def log_info(logger: _SupportsLog, template: str, *args: object) -> None:
    """Log an INFO message with percent-style formatting."""
    _emit(logger, LogLevel.INFO, template, args)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a WARNING message, optionally attaching ``exc_info``."""
    _emit(logger, LogLevel.WARNING, template, args, exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an ERROR message, optionally attaching ``exc_info``.

    Parameters
    ----------
    logger : _SupportsLog
        femtologging logger from :func:`get_logger`.
    template : str
        Percent-style template.
    *args : object
        Values interpolated into ``template``.
    exc_info : object | None, optional
        Exception whose traceback is attached to the record.

    """
    _emit(logger, LogLevel.ERROR, template, args, exc_info)


__all__ = [
    "DEFAULT_LEVEL",
    "LogLevel",
    "configure_logging",
    "get_logger",
    "log_debug",
    "log_error",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
