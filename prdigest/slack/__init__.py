"""Slack notifier used to deliver rendered digests."""

from __future__ import annotations

from .notifier import ChannelNotifier, SlackConfig, SlackNotifier, build_post_message

__all__ = ["ChannelNotifier", "SlackConfig", "SlackNotifier", "build_post_message"]
