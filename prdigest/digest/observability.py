"""Structured log events emitted by the digest pipeline.

Every event is a single pre-formatted femtologging record that starts with
the bracketed event name followed by ``key=value`` fields, so failures can
be traced back to a project id or channel name from the logs alone.

Usage
-----
>>> event_logger = DigestEventLogger()
>>> event_logger.log_project_missing(channel="team-a", project_id="42")

"""

from __future__ import annotations

import enum
import typing as typ

from prdigest.errors import (
    ConfigError,
    InvalidOptionsError,
    RemoteError,
    RemoteRejectedError,
    ResponseDecodeError,
    TemplateError,
    TransportError,
)
from prdigest.logging import get_logger, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

    from .pipeline import DigestRunResult

logger = get_logger(__name__)

# HTTP status code threshold for server errors (5xx)
_HTTP_SERVER_ERROR_THRESHOLD = 500


class DigestEventType(enum.StrEnum):
    """Structured log event types for digest runs."""

    RUN_STARTED = "digest.run.started"
    RUN_COMPLETED = "digest.run.completed"
    RUN_CANCELLED = "digest.run.cancelled"
    PROJECT_FETCHED = "digest.project.fetched"
    PROJECT_FETCH_FAILED = "digest.project.fetch_failed"
    PROJECT_MISSING = "digest.project.missing"
    CHANNEL_DISPATCHED = "digest.channel.dispatched"
    CHANNEL_RENDER_FAILED = "digest.channel.render_failed"
    CHANNEL_DISPATCH_FAILED = "digest.channel.dispatch_failed"


class ErrorCategory(enum.StrEnum):
    """Categories for classifying per-item failures in logs."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    REJECTED = "rejected"
    TEMPLATE = "template"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (TransportError, ErrorCategory.TRANSIENT),
    (InvalidOptionsError, ErrorCategory.CLIENT_ERROR),
    (ResponseDecodeError, ErrorCategory.SCHEMA_DRIFT),
    (RemoteRejectedError, ErrorCategory.REJECTED),
    (TemplateError, ErrorCategory.TEMPLATE),
    (ConfigError, ErrorCategory.CONFIGURATION),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for log routing.

    ``RemoteError`` is split on its status code: server errors are
    transient, everything else is a client error.
    """
    if isinstance(exc, RemoteError):
        if (
            exc.status_code is not None
            and exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        ):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class DigestEventLogger:
    """Emit structured digest events via femtologging."""

    def log_run_started(self, *, channels: int, projects: int) -> None:
        """Log the start of a run with its channel and distinct project counts."""
        log_info(
            logger,
            "[%s] channels=%d projects=%d",
            DigestEventType.RUN_STARTED,
            channels,
            projects,
        )

    def log_run_completed(
        self, result: DigestRunResult, duration: dt.timedelta
    ) -> None:
        """Log run completion with per-item outcome counts."""
        log_info(
            logger,
            "[%s] duration_seconds=%.3f projects_fetched=%d projects_failed=%d "
            "channels_dispatched=%d channels_failed=%d channels_skipped=%d "
            "cancelled=%s",
            DigestEventType.RUN_COMPLETED,
            duration.total_seconds(),
            len(result.projects_fetched),
            len(result.projects_failed),
            len(result.channels_dispatched),
            len(result.channels_failed),
            len(result.channels_skipped),
            result.cancelled,
        )

    def log_run_cancelled(self, *, pending_channels: int) -> None:
        """Log that cancellation stopped the run before every channel ran."""
        log_warning(
            logger,
            "[%s] pending_channels=%d",
            DigestEventType.RUN_CANCELLED,
            pending_channels,
        )

    def log_project_fetched(self, *, project_id: str, count: int) -> None:
        """Log a successful project fetch."""
        log_info(
            logger,
            "[%s] project_id=%s pull_requests=%d",
            DigestEventType.PROJECT_FETCHED,
            project_id,
            count,
        )

    def log_project_fetch_failed(
        self, *, project_id: str, error: BaseException
    ) -> None:
        """Log a failed project fetch with its error category."""
        log_error(
            logger,
            "[%s] project_id=%s error_category=%s error_type=%s error_message=%s",
            DigestEventType.PROJECT_FETCH_FAILED,
            project_id,
            categorize_error(error),
            type(error).__name__,
            str(error),
        )

    def log_project_missing(self, *, channel: str, project_id: str) -> None:
        """Log that a channel's project has no fetched entry and is skipped."""
        log_warning(
            logger,
            "[%s] channel=%s project_id=%s missing entry, skipping",
            DigestEventType.PROJECT_MISSING,
            channel,
            project_id,
        )

    def log_channel_dispatched(self, *, channel: str, count: int) -> None:
        """Log a delivered digest."""
        log_info(
            logger,
            "[%s] channel=%s pull_requests=%d",
            DigestEventType.CHANNEL_DISPATCHED,
            channel,
            count,
        )

    def log_channel_render_failed(
        self, *, channel: str, error: BaseException
    ) -> None:
        """Log a template failure that prevented dispatch to a channel."""
        log_error(
            logger,
            "[%s] channel=%s error_message=%s",
            DigestEventType.CHANNEL_RENDER_FAILED,
            channel,
            str(error),
        )

    def log_channel_dispatch_failed(
        self, *, channel: str, error: BaseException
    ) -> None:
        """Log a failed delivery with its error category."""
        log_error(
            logger,
            "[%s] channel=%s error_category=%s error_type=%s error_message=%s",
            DigestEventType.CHANNEL_DISPATCH_FAILED,
            channel,
            categorize_error(error),
            type(error).__name__,
            str(error),
        )
