"""Fetch, deduplicate, render, and dispatch merge request digests.

A run has two passes. The first collects the distinct project ids across all
channel subscriptions and fetches each one exactly once, so channels that
share a project see the same snapshot. The second walks the subscriptions in
configured order, concatenates the cached merge requests for each channel,
sorts them oldest first, renders the template, and posts the result.

Failures are isolated per project and per channel: they are logged and the
run moves on. A project whose fetch failed simply contributes nothing to the
channels that subscribe to it.
"""

from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
import typing as typ

from prdigest.errors import PrDigestError, TransportError
from prdigest.gitlab.options import MergeRequestOptions, Scope, Sort, State, TriState
from prdigest.rendering import render_pull_requests, sort_by_created_at

from .observability import DigestEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from prdigest.gitlab.client import PullRequestSource
    from prdigest.models import ChannelSubscription, PullRequest
    from prdigest.rendering import DigestTemplate
    from prdigest.slack.notifier import ChannelNotifier

    type FetchCache = dict[str, tuple[PullRequest, ...]]

# Open, non-draft merge requests nobody has picked up yet
OPEN_UNCLAIMED_OPTIONS = MergeRequestOptions(
    scope=Scope.ALL,
    state=State.OPENED,
    is_draft=TriState.FALSE,
    has_assignee=TriState.FALSE,
    has_been_approved=TriState.FALSE,
    has_reviewer=TriState.FALSE,
    sort=Sort.ASC,
)


@dataclasses.dataclass(frozen=True, slots=True)
class DigestPipelineConfig:
    """Runtime knobs for a digest run.

    Attributes
    ----------
    max_concurrency
        Upper bound on concurrent project fetches; ``1`` fetches sequentially.
    run_timeout_s
        Optional deadline for the whole run. The remaining time is passed to
        every outbound call; once it has elapsed no new work is issued.

    """

    max_concurrency: int = 4
    run_timeout_s: float | None = None

    def __post_init__(self) -> None:
        """Reject bounds that would stall or skip the run."""
        if self.max_concurrency < 1:
            msg = f"max_concurrency must be positive, got {self.max_concurrency}"
            raise ValueError(msg)
        if self.run_timeout_s is not None and self.run_timeout_s <= 0:
            msg = f"run_timeout_s must be positive, got {self.run_timeout_s}"
            raise ValueError(msg)


@dataclasses.dataclass(frozen=True, slots=True)
class DigestRunResult:
    """Outcome summary of a single digest run.

    ``cancelled`` is set only when the stop event or the run deadline left
    channels unattempted or aborted a dispatch. A deadline that passes after
    the last channel was delivered does not count.
    """

    projects_fetched: tuple[str, ...] = ()
    projects_failed: tuple[str, ...] = ()
    channels_dispatched: tuple[str, ...] = ()
    channels_failed: tuple[str, ...] = ()
    channels_skipped: tuple[str, ...] = ()
    cancelled: bool = False


def distinct_projects(
    subscriptions: cabc.Iterable[ChannelSubscription],
) -> list[str]:
    """Return every subscribed project id once, in first-seen order."""
    return list(
        dict.fromkeys(
            project
            for subscription in subscriptions
            for project in subscription.projects
        )
    )


class _RunControl:
    """Cancellation signal and deadline shared by one run."""

    def __init__(
        self, stop_event: asyncio.Event | None, run_timeout_s: float | None
    ) -> None:
        self._stop_event = stop_event
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._deadline = (
            None if run_timeout_s is None else loop.time() + run_timeout_s
        )

    def now(self) -> float:
        """Return the event loop clock reading."""
        return self._loop.time()

    def remaining(self) -> float | None:
        """Return seconds left before the deadline, or ``None`` without one."""
        if self._deadline is None:
            return None
        return max(self._deadline - self._loop.time(), 0.0)

    @property
    def stopped(self) -> bool:
        """Return ``True`` once cancellation fired or the deadline passed."""
        if self._stop_event is not None and self._stop_event.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    async def call[T](
        self,
        make_call: cabc.Callable[[float | None], cabc.Coroutine[typ.Any, typ.Any, T]],
    ) -> T:
        """Await an outbound call, aborting it if the stop event fires.

        ``make_call`` receives the remaining deadline to use as its timeout.
        An aborted call surfaces as :class:`TransportError`.
        """
        if self.stopped:
            raise TransportError.cancelled()
        call = asyncio.ensure_future(make_call(self.remaining()))
        if self._stop_event is None:
            return await call

        waiter = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # Cancelling the enclosing task cancels the call with it
            call.cancel()
            raise
        finally:
            waiter.cancel()
        if call.done():
            return call.result()

        call.cancel()
        await asyncio.gather(call, return_exceptions=True)
        raise TransportError.cancelled()


class DigestPipeline:
    """Aggregate merge requests per channel and deliver rendered digests.

    Parameters
    ----------
    source
        Client that lists a project's merge requests.
    notifier
        Client that posts text to a chat channel.
    template
        Compiled digest template shared by every channel.
    config
        Concurrency and deadline settings.
    event_logger
        Structured event sink; a default femtologging-backed logger is used
        when omitted.

    """

    def __init__(
        self,
        source: PullRequestSource,
        notifier: ChannelNotifier,
        template: DigestTemplate,
        *,
        config: DigestPipelineConfig | None = None,
        event_logger: DigestEventLogger | None = None,
    ) -> None:
        """Bind the pipeline to its collaborators."""
        self._source = source
        self._notifier = notifier
        self._template = template
        self._config = config or DigestPipelineConfig()
        self._event_logger = event_logger or DigestEventLogger()

    async def run(
        self,
        subscriptions: cabc.Sequence[ChannelSubscription],
        *,
        stop_event: asyncio.Event | None = None,
    ) -> DigestRunResult:
        """Run both passes once for ``subscriptions``.

        Parameters
        ----------
        subscriptions
            Channel subscriptions in the order digests should be sent.
        stop_event
            Optional cancellation signal. Once set, in-flight calls are
            aborted and no further fetches or dispatches are issued.

        Returns
        -------
        DigestRunResult
            Per-project and per-channel outcomes.

        """
        control = _RunControl(stop_event, self._config.run_timeout_s)
        started_at = control.now()
        projects = distinct_projects(subscriptions)
        self._event_logger.log_run_started(
            channels=len(subscriptions), projects=len(projects)
        )

        cache = await self._fetch_projects(projects, control)
        outcome = await self._dispatch_channels(subscriptions, cache, control)

        result = DigestRunResult(
            projects_fetched=tuple(p for p in projects if p in cache),
            projects_failed=tuple(p for p in projects if p not in cache),
            channels_dispatched=outcome.dispatched,
            channels_failed=outcome.failed,
            channels_skipped=outcome.skipped,
            cancelled=outcome.cancelled,
        )
        elapsed = dt.timedelta(seconds=control.now() - started_at)
        self._event_logger.log_run_completed(result, elapsed)
        return result

    async def _fetch_projects(
        self, projects: list[str], control: _RunControl
    ) -> FetchCache:
        """Fetch each distinct project once; failed projects get no entry."""
        cache: FetchCache = {}
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def fetch(project_id: str) -> None:
            async with semaphore:
                try:
                    pull_requests = await control.call(
                        lambda timeout: self._source.list_pull_requests(
                            project_id, OPEN_UNCLAIMED_OPTIONS, timeout=timeout
                        )
                    )
                except PrDigestError as exc:
                    self._event_logger.log_project_fetch_failed(
                        project_id=project_id, error=exc
                    )
                    return
                cache[project_id] = tuple(pull_requests)
                self._event_logger.log_project_fetched(
                    project_id=project_id, count=len(pull_requests)
                )

        await asyncio.gather(*(fetch(project_id) for project_id in projects))
        return cache

    def _assemble(
        self, subscription: ChannelSubscription, cache: FetchCache
    ) -> list[PullRequest]:
        """Concatenate cached merge requests in subscription order, oldest first."""
        collected: list[PullRequest] = []
        for project_id in subscription.projects:
            pull_requests = cache.get(project_id)
            if pull_requests is None:
                self._event_logger.log_project_missing(
                    channel=subscription.channel, project_id=project_id
                )
                continue
            collected.extend(pull_requests)
        return sort_by_created_at(collected)

    async def _dispatch_channels(
        self,
        subscriptions: cabc.Sequence[ChannelSubscription],
        cache: FetchCache,
        control: _RunControl,
    ) -> _DispatchOutcome:
        """Render and deliver one digest per subscription, in order."""
        outcome = _DispatchOutcome()
        for index, subscription in enumerate(subscriptions):
            if control.stopped:
                self._event_logger.log_run_cancelled(
                    pending_channels=len(subscriptions) - index
                )
                outcome.cancelled = True
                break
            await self._dispatch_channel(subscription, cache, control, outcome)
        return outcome

    async def _dispatch_channel(
        self,
        subscription: ChannelSubscription,
        cache: FetchCache,
        control: _RunControl,
        outcome: _DispatchOutcome,
    ) -> None:
        channel = subscription.channel
        pull_requests = self._assemble(subscription, cache)
        try:
            text = render_pull_requests(self._template, pull_requests)
        except PrDigestError as exc:
            self._event_logger.log_channel_render_failed(channel=channel, error=exc)
            outcome.skip(channel)
            return

        try:
            await control.call(
                lambda timeout: self._notifier.notify(channel, text, timeout=timeout)
            )
        except PrDigestError as exc:
            self._event_logger.log_channel_dispatch_failed(channel=channel, error=exc)
            outcome.fail(channel)
            if control.stopped:
                outcome.cancelled = True
            return
        self._event_logger.log_channel_dispatched(
            channel=channel, count=len(pull_requests)
        )
        outcome.dispatch(channel)


class _DispatchOutcome:
    """Mutable accumulator for Pass 2 outcomes."""

    def __init__(self) -> None:
        self._dispatched: list[str] = []
        self._failed: list[str] = []
        self._skipped: list[str] = []
        self.cancelled = False

    def dispatch(self, channel: str) -> None:
        self._dispatched.append(channel)

    def fail(self, channel: str) -> None:
        self._failed.append(channel)

    def skip(self, channel: str) -> None:
        self._skipped.append(channel)

    @property
    def dispatched(self) -> tuple[str, ...]:
        return tuple(self._dispatched)

    @property
    def failed(self) -> tuple[str, ...]:
        return tuple(self._failed)

    @property
    def skipped(self) -> tuple[str, ...]:
        return tuple(self._skipped)
