"""Command-line entry point that runs one digest and exits.

Configuration is read from ``PRDIGEST_*`` environment variables (see
:mod:`prdigest.config`). ``PRDIGEST_LOG_LEVEL`` (default ``INFO``) controls
logging. SIGINT and SIGTERM stop the run: in-flight requests are aborted and
no further digests are sent.

Run the digest directly with ``python -m prdigest.runtime`` or the
``prdigest`` console script.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal

from prdigest.config import DigestConfig
from prdigest.digest import DigestPipeline, DigestRunResult
from prdigest.errors import ConfigError
from prdigest.gitlab import GitLabClient
from prdigest.logging import (
    DEFAULT_LOG_LEVEL,
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)
from prdigest.slack import SlackNotifier

__all__ = ["install_stop_handlers", "main", "run_digest"]

logger = get_logger(__name__)

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_stop_handlers(
    loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event
) -> None:
    """Set ``stop_event`` when the process receives SIGINT or SIGTERM."""
    for signum in _STOP_SIGNALS:
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except (NotImplementedError, RuntimeError) as exc:
            log_warning(
                logger,
                "Cannot install handler for %s; it will not stop the run: %s",
                signum.name,
                exc,
            )


async def run_digest(
    config: DigestConfig, *, stop_event: asyncio.Event | None = None
) -> DigestRunResult:
    """Build the clients from ``config``, run the pipeline once, and close them."""
    gitlab = GitLabClient(config.gitlab)
    slack = SlackNotifier(config.slack)
    try:
        pipeline = DigestPipeline(
            gitlab, slack, config.template, config=config.pipeline
        )
        return await pipeline.run(config.subscriptions, stop_event=stop_event)
    finally:
        await gitlab.aclose()
        await slack.aclose()


async def _run_with_signals(config: DigestConfig) -> DigestRunResult:
    stop_event = asyncio.Event()
    install_stop_handlers(asyncio.get_running_loop(), stop_event)
    return await run_digest(config, stop_event=stop_event)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="prdigest",
        description="Post a digest of open GitLab merge requests to Slack.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override PRDIGEST_LOG_LEVEL (TRACE, DEBUG, INFO, WARNING, ERROR)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run one digest.

    Returns
    -------
    int
        ``0`` once every channel has been attempted, ``1`` when the
        configuration is invalid and nothing was sent.

    """
    args = _parse_args(argv)
    log_level_str = args.log_level or os.environ.get(
        "PRDIGEST_LOG_LEVEL", DEFAULT_LOG_LEVEL
    )
    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid log level %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    try:
        config = DigestConfig.from_env()
    except ConfigError as exc:
        log_error(logger, "Configuration error: %s", exc)
        return 1

    log_info(
        logger,
        "Starting digest for %d channel(s) (log_level=%s)",
        len(config.subscriptions),
        normalized_level,
    )
    result = asyncio.run(_run_with_signals(config))
    if result.cancelled:
        log_warning(logger, "Digest run stopped before all channels were sent")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
