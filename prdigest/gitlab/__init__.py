"""GitLab merge request client and filter options."""

from __future__ import annotations

from .client import GitLabClient, GitLabConfig, PullRequestSource
from .options import (
    DEFAULT_PER_PAGE,
    MergeRequestOptions,
    Scope,
    Sort,
    State,
    TriState,
)

__all__ = [
    "DEFAULT_PER_PAGE",
    "GitLabClient",
    "GitLabConfig",
    "MergeRequestOptions",
    "PullRequestSource",
    "Scope",
    "Sort",
    "State",
    "TriState",
]
