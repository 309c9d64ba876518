"""Unit tests for digest observability logging."""

from __future__ import annotations

import datetime as dt

import pytest

from prdigest.digest import (
    DigestEventLogger,
    DigestEventType,
    DigestRunResult,
    ErrorCategory,
    categorize_error,
)
from prdigest.errors import (
    ConfigError,
    InvalidOptionsError,
    RemoteError,
    RemoteRejectedError,
    ResponseDecodeError,
    TemplateError,
    TransportError,
)
from tests.helpers.femtologging_capture import capture_femto_logs

_LOGGER_NAME = "prdigest.digest.observability"


class TestDigestEventLogger:
    """Tests for ``DigestEventLogger`` structured log events."""

    @pytest.fixture
    def event_logger(self) -> DigestEventLogger:
        """Return a fresh digest event logger."""
        return DigestEventLogger()

    def test_log_run_started_emits_info(self, event_logger: DigestEventLogger) -> None:
        """Start events report channel and distinct project counts."""
        with capture_femto_logs(_LOGGER_NAME) as capture:
            event_logger.log_run_started(channels=3, projects=5)
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "INFO"
            assert DigestEventType.RUN_STARTED in record.message
            assert "channels=3 projects=5" in record.message

    def test_log_run_completed_reports_outcome_counts(
        self, event_logger: DigestEventLogger
    ) -> None:
        """Completion events summarise per-item outcomes."""
        result = DigestRunResult(
            projects_fetched=("1", "2"),
            projects_failed=("3",),
            channels_dispatched=("a",),
            channels_failed=("b",),
        )
        with capture_femto_logs(_LOGGER_NAME) as capture:
            event_logger.log_run_completed(result, dt.timedelta(seconds=1.5))
            capture.wait_for_count(1)
            message = capture.records[0].message
            assert "duration_seconds=1.500" in message
            assert "projects_fetched=2 projects_failed=1" in message
            assert "channels_dispatched=1 channels_failed=1" in message
            assert "cancelled=False" in message

    def test_log_project_missing_names_project_and_channel(
        self, event_logger: DigestEventLogger
    ) -> None:
        """Missing entries are warnings that identify the skipped project."""
        with capture_femto_logs(_LOGGER_NAME) as capture:
            event_logger.log_project_missing(channel="second", project_id="bar")
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "WARNING"
            assert DigestEventType.PROJECT_MISSING in record.message
            assert "project_id=bar" in record.message
            assert "channel=second" in record.message
            assert "missing entry, skipping" in record.message

    def test_log_project_fetch_failed_includes_category(
        self, event_logger: DigestEventLogger
    ) -> None:
        """Fetch failures are errors tagged with their category."""
        error = RemoteError.http_error("GitLab", 500)
        with capture_femto_logs(_LOGGER_NAME) as capture:
            event_logger.log_project_fetch_failed(project_id="bar", error=error)
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "ERROR"
            assert "project_id=bar" in record.message
            assert "error_category=transient" in record.message
            assert "GitLab HTTP 500" in record.message

    def test_log_channel_dispatch_failed_includes_category(
        self, event_logger: DigestEventLogger
    ) -> None:
        """Dispatch failures identify the channel and the rejection."""
        error = RemoteRejectedError.not_ok("Slack", "channel_not_found")
        with capture_femto_logs(_LOGGER_NAME) as capture:
            event_logger.log_channel_dispatch_failed(channel="first", error=error)
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "ERROR"
            assert "channel=first" in record.message
            assert "error_category=rejected" in record.message
            assert "channel_not_found" in record.message

    def test_log_run_cancelled_emits_warning(
        self, event_logger: DigestEventLogger
    ) -> None:
        """Cancellation is a warning carrying the pending channel count."""
        with capture_femto_logs(_LOGGER_NAME) as capture:
            event_logger.log_run_cancelled(pending_channels=2)
            capture.wait_for_count(1)
            record = capture.records[0]
            assert record.level == "WARNING"
            assert "pending_channels=2" in record.message


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (TransportError.timeout("https://gitlab.test"), ErrorCategory.TRANSIENT),
        (RemoteError.http_error("GitLab", 503), ErrorCategory.TRANSIENT),
        (RemoteError.http_error("GitLab", 404), ErrorCategory.CLIENT_ERROR),
        (RemoteError("no status"), ErrorCategory.CLIENT_ERROR),
        (InvalidOptionsError.invalid_page_size(-1), ErrorCategory.CLIENT_ERROR),
        (
            ResponseDecodeError.invalid_body("GitLab", "<html>", "expected array"),
            ErrorCategory.SCHEMA_DRIFT,
        ),
        (RemoteRejectedError.not_ok("Slack", None), ErrorCategory.REJECTED),
        (TemplateError.render_failed("boom"), ErrorCategory.TEMPLATE),
        (ConfigError.missing("PRDIGEST_SLACK_TOKEN"), ErrorCategory.CONFIGURATION),
        (RuntimeError("boom"), ErrorCategory.UNKNOWN),
    ],
)
def test_categorize_error(error: BaseException, expected: ErrorCategory) -> None:
    """Errors map onto stable log categories."""
    assert categorize_error(error) is expected
