"""Filter options for the GitLab merge requests endpoint.

Options left unset are omitted from the query string entirely so GitLab
applies its own defaults. Enum fields accept either enum members or their
raw string values; anything outside the recognised set is rejected before
a request is made.

Usage
-----
>>> options = MergeRequestOptions(
...     scope=Scope.ALL, state=State.OPENED, is_draft=TriState.FALSE
... )
>>> options.to_query_params()
{'scope': 'all', 'state': 'opened', 'wip': 'no', 'per_page': '100'}

"""

from __future__ import annotations

import dataclasses
import enum

from prdigest.errors import InvalidOptionsError

DEFAULT_PER_PAGE = 100


class Scope(enum.StrEnum):
    """Whose merge requests to return."""

    CREATED_BY_ME = "created_by_me"
    ASSIGNED_TO_ME = "assigned_to_me"
    ALL = "all"


class State(enum.StrEnum):
    """Merge request lifecycle state."""

    CLOSED = "closed"
    LOCKED = "locked"
    MERGED = "merged"
    OPENED = "opened"


class Sort(enum.StrEnum):
    """Ordering by creation time."""

    ASC = "asc"
    DESC = "desc"


class TriState(enum.Enum):
    """Three-valued filter flag: unset, true, or false."""

    UNSET = "unset"
    TRUE = "true"
    FALSE = "false"


def _coerce[E: enum.StrEnum](
    enum_type: type[E], field: str, value: E | str | None
) -> E | None:
    if value is None:
        return None
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = [member.value for member in enum_type]
        raise InvalidOptionsError.unexpected_value(field, value, allowed) from exc


def _flag(value: TriState, *, true: str, false: str) -> str | None:
    match value:
        case TriState.TRUE:
            return true
        case TriState.FALSE:
            return false
        case TriState.UNSET:
            return None


@dataclasses.dataclass(frozen=True, slots=True)
class MergeRequestOptions:
    """Query filters for listing a project's merge requests.

    Attributes
    ----------
    scope
        Restrict to merge requests created by or assigned to the token
        owner, or ``all``.
    state
        Lifecycle state to match.
    is_draft
        Serialised as ``wip=yes|no``.
    has_assignee
        Serialised as ``assignee_id=Any|None``.
    has_been_approved
        Serialised as ``approved_by_ids=Any|None``.
    has_reviewer
        Serialised as ``reviewer_id=Any|None``.
    sort
        Creation-time ordering.
    per_page
        Page size; ``None`` or ``0`` means :data:`DEFAULT_PER_PAGE`.

    """

    scope: Scope | str | None = None
    state: State | str | None = None
    is_draft: TriState = TriState.UNSET
    has_assignee: TriState = TriState.UNSET
    has_been_approved: TriState = TriState.UNSET
    has_reviewer: TriState = TriState.UNSET
    sort: Sort | str | None = None
    per_page: int | None = None

    def validate(self) -> None:
        """Raise :class:`InvalidOptionsError` if any field is unrecognised."""
        flags = {
            "is_draft": self.is_draft,
            "has_assignee": self.has_assignee,
            "has_been_approved": self.has_been_approved,
            "has_reviewer": self.has_reviewer,
        }
        for field, flag in flags.items():
            if not isinstance(flag, TriState):
                allowed = [member.name for member in TriState]
                raise InvalidOptionsError.unexpected_value(field, flag, allowed)

        _coerce(Scope, "scope", self.scope)
        _coerce(State, "state", self.state)
        _coerce(Sort, "sort", self.sort)
        if self.per_page is not None and self.per_page < 0:
            raise InvalidOptionsError.invalid_page_size(self.per_page)

    def to_query_params(self) -> dict[str, str]:
        """Validate the options and serialise them as query parameters."""
        self.validate()
        scope = _coerce(Scope, "scope", self.scope)
        state = _coerce(State, "state", self.state)
        sort = _coerce(Sort, "sort", self.sort)

        params: dict[str, str] = {}
        if scope is not None:
            params["scope"] = scope.value
        if state is not None:
            params["state"] = state.value
        if sort is not None:
            params["sort"] = sort.value

        optional = {
            "wip": _flag(self.is_draft, true="yes", false="no"),
            "assignee_id": _flag(self.has_assignee, true="Any", false="None"),
            "approved_by_ids": _flag(self.has_been_approved, true="Any", false="None"),
            "reviewer_id": _flag(self.has_reviewer, true="Any", false="None"),
        }
        params.update({key: value for key, value in optional.items() if value})
        params["per_page"] = str(self.per_page or DEFAULT_PER_PAGE)
        return params


__all__ = [
    "DEFAULT_PER_PAGE",
    "MergeRequestOptions",
    "Scope",
    "Sort",
    "State",
    "TriState",
]
