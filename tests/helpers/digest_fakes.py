"""In-memory collaborators for digest pipeline tests."""

from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
import typing as typ

from prdigest.digest import DigestEventLogger
from prdigest.errors import RemoteError
from prdigest.models import Author, PullRequest

if typ.TYPE_CHECKING:
    from prdigest.digest import DigestRunResult
    from prdigest.gitlab import MergeRequestOptions

BASE_TIME = dt.datetime(2024, 3, 1, 9, 0, tzinfo=dt.UTC)


def make_pull_request(
    title: str,
    *,
    minutes: int = 0,
    author: str = "octo",
) -> PullRequest:
    """Build a merge request created ``minutes`` after :data:`BASE_TIME`."""
    slug = title.lower().replace(" ", "-")
    return PullRequest(
        title=title,
        url=f"https://gitlab.example.test/merge_requests/{slug}",
        author=Author(username=author),
        created_at=BASE_TIME + dt.timedelta(minutes=minutes),
    )


class FakePullRequestSource:
    """Deterministic PullRequestSource returning canned merge requests."""

    def __init__(
        self,
        projects: dict[str, list[PullRequest]],
        *,
        failures: dict[str, Exception] | None = None,
    ) -> None:
        """Store per-project results and per-project failures."""
        self._projects = projects
        self._failures = failures or {}
        self.calls: list[tuple[str, MergeRequestOptions, float | None]] = []

    def calls_for(self, project_id: str) -> int:
        """Return how many times ``project_id`` was fetched."""
        return sum(1 for call in self.calls if call[0] == project_id)

    async def list_pull_requests(
        self,
        project_id: str,
        options: MergeRequestOptions,
        *,
        timeout: float | None = None,
    ) -> list[PullRequest]:
        """Return the canned list or raise the canned failure."""
        self.calls.append((project_id, options, timeout))
        await asyncio.sleep(0)
        failure = self._failures.get(project_id)
        if failure is not None:
            raise failure
        if project_id not in self._projects:
            raise RemoteError.http_error("GitLab", 404)
        return list(self._projects[project_id])


@dataclasses.dataclass(slots=True)
class SentMessage:
    """A message captured by :class:`FakeNotifier`."""

    channel: str
    text: str


class FakeNotifier:
    """ChannelNotifier that records messages and can fail per channel."""

    def __init__(self, *, failures: dict[str, Exception] | None = None) -> None:
        """Store per-channel failures."""
        self._failures = failures or {}
        self.sent: list[SentMessage] = []
        self.attempts: list[str] = []

    def text_for(self, channel: str) -> str:
        """Return the single message delivered to ``channel``."""
        (text,) = [message.text for message in self.sent if message.channel == channel]
        return text

    async def notify(
        self, channel: str, text: str, *, timeout: float | None = None
    ) -> None:
        """Record the message or raise the canned failure."""
        del timeout
        self.attempts.append(channel)
        failure = self._failures.get(channel)
        if failure is not None:
            raise failure
        self.sent.append(SentMessage(channel=channel, text=text))


class BlockingNotifier(FakeNotifier):
    """Notifier whose calls never finish until cancelled."""

    def __init__(self) -> None:
        """Track the started event so tests can fire cancellation mid-call."""
        super().__init__()
        self.started = asyncio.Event()
        self.cancelled = asyncio.Event()

    async def notify(
        self, channel: str, text: str, *, timeout: float | None = None
    ) -> None:
        """Block forever after recording the attempt."""
        del text, timeout
        self.attempts.append(channel)
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled.set()
            raise


class RecordingEventLogger(DigestEventLogger):
    """DigestEventLogger that records events instead of emitting logs."""

    def __init__(self) -> None:
        """Initialise the event list."""
        self.events: list[tuple[str, dict[str, object]]] = []

    def _record(self, name: str, **fields: object) -> None:
        self.events.append((name, fields))

    def named(self, name: str) -> list[dict[str, object]]:
        """Return the fields of every event called ``name``."""
        return [fields for event, fields in self.events if event == name]

    def log_run_started(self, *, channels: int, projects: int) -> None:
        self._record("run_started", channels=channels, projects=projects)

    def log_run_completed(
        self, result: DigestRunResult, duration: dt.timedelta
    ) -> None:
        self._record("run_completed", result=result, duration=duration)

    def log_run_cancelled(self, *, pending_channels: int) -> None:
        self._record("run_cancelled", pending_channels=pending_channels)

    def log_project_fetched(self, *, project_id: str, count: int) -> None:
        self._record("project_fetched", project_id=project_id, count=count)

    def log_project_fetch_failed(
        self, *, project_id: str, error: BaseException
    ) -> None:
        self._record("project_fetch_failed", project_id=project_id, error=error)

    def log_project_missing(self, *, channel: str, project_id: str) -> None:
        self._record("project_missing", channel=channel, project_id=project_id)

    def log_channel_dispatched(self, *, channel: str, count: int) -> None:
        self._record("channel_dispatched", channel=channel, count=count)

    def log_channel_render_failed(
        self, *, channel: str, error: BaseException
    ) -> None:
        self._record("channel_render_failed", channel=channel, error=error)

    def log_channel_dispatch_failed(
        self, *, channel: str, error: BaseException
    ) -> None:
        self._record("channel_dispatch_failed", channel=channel, error=error)
