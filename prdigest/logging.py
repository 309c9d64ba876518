"""femtologging helpers shared by the digest pipeline and its clients.

Messages are interpolated with ``%`` before they reach femtologging, so each
record carries a finished string and handlers never format lazily.

Example:
>>> from prdigest.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Fetched %d merge requests for %s", 3, "group/app")

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class LogLevel(enum.StrEnum):
    """Log levels accepted from ``PRDIGEST_LOG_LEVEL`` or ``--log-level``."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


DEFAULT_LOG_LEVEL = LogLevel.INFO

# Spellings operators commonly use for the canonical names above
_LEVEL_ALIASES: cabc.Mapping[str, LogLevel] = {
    "WARN": LogLevel.WARNING,
    "FATAL": LogLevel.CRITICAL,
}


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Map a raw level name onto a :class:`LogLevel`.

    Parameters
    ----------
    level : str | None
        Level name as typed by an operator; case and surrounding whitespace
        are ignored, and ``WARN``/``FATAL`` are accepted as aliases.

    Returns
    -------
    tuple[str, bool]
        The canonical level name and ``True`` when ``level`` was missing or
        unknown and :data:`DEFAULT_LOG_LEVEL` was substituted.

    """
    candidate = (level or "").strip().upper()
    if candidate in LogLevel.__members__:
        return (LogLevel[candidate].value, False)
    if candidate in _LEVEL_ALIASES:
        return (_LEVEL_ALIASES[candidate].value, False)
    return (DEFAULT_LOG_LEVEL.value, True)


def configure_logging(level: str | None, *, force: bool = False) -> tuple[str, bool]:
    """Install the root femtologging configuration for a digest run.

    Returns the same pair as :func:`normalize_log_level` so the caller can
    warn about a rejected level once logging is live.
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
    exc_info: object | None,
) -> None:
    message = template % args if args else template
    logger.log(level.value, message, exc_info=exc_info, stack_info=False)


def log_debug(
    logger: _SupportsLog, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit ``template % args`` at DEBUG."""
    _emit(logger, LogLevel.DEBUG, template, args, exc_info)


def log_info(
    logger: _SupportsLog, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit ``template % args`` at INFO."""
    _emit(logger, LogLevel.INFO, template, args, exc_info)


def log_warning(
    logger: _SupportsLog, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit ``template % args`` at WARNING.

    Used for skipped work that does not fail the run, such as a channel
    whose subscribed project has no fetched entry.
    """
    _emit(logger, LogLevel.WARNING, template, args, exc_info)


def log_error(
    logger: _SupportsLog, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit ``template % args`` at ERROR."""
    _emit(logger, LogLevel.ERROR, template, args, exc_info)


__all__ = [
    "DEFAULT_LOG_LEVEL",
    "LogLevel",
    "configure_logging",
    "get_logger",
    "log_debug",
    "log_error",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
