"""Typed domain models shared by the clients and the digest pipeline."""

from __future__ import annotations

import dataclasses
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt


@dataclasses.dataclass(frozen=True, slots=True)
class Author:
    """Author of a merge request."""

    username: str


@dataclasses.dataclass(frozen=True, slots=True)
class PullRequest:
    """Open merge request as exposed to digest templates.

    Instances compare structurally; a project may legitimately report two
    merge requests with identical fields.
    """

    title: str
    url: str
    author: Author
    created_at: dt.datetime


@dataclasses.dataclass(frozen=True, slots=True)
class ChannelSubscription:
    """Chat channel and the ordered projects whose digest it receives."""

    channel: str
    projects: tuple[str, ...]


__all__ = ["Author", "ChannelSubscription", "PullRequest"]
