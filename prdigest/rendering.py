"""Render merge request digests through a user-supplied Jinja2 template.

Templates receive a single ``pull_requests`` variable: the merge requests in
the order the caller passes them. Each entry exposes ``title``, ``url``,
``author.username``, and ``created_at`` (a timezone-aware ``datetime``).
Undefined names fail loudly instead of rendering as empty strings.

Usage
-----
>>> template = DigestTemplate.from_source(
...     "{% for pr in pull_requests %}- <{{ pr.url }}|{{ pr.title }}>\\n{% endfor %}"
... )
>>> text = render_pull_requests(template, sort_by_created_at(pull_requests))

"""

from __future__ import annotations

import operator
import typing as typ

import jinja2

from prdigest.errors import TemplateError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from prdigest.models import PullRequest

TEMPLATE_NAME = "pull_requests"

_ENVIRONMENT = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    autoescape=False,  # noqa: S701 - output is Slack mrkdwn, not HTML
    keep_trailing_newline=True,
)


class DigestTemplate:
    """Compiled digest template."""

    def __init__(self, template: jinja2.Template) -> None:
        """Wrap an already compiled Jinja2 template."""
        self._template = template

    @classmethod
    def from_source(cls, source: str) -> DigestTemplate:
        """Compile ``source``, raising :class:`TemplateError` if malformed."""
        try:
            compiled = _ENVIRONMENT.from_string(source)
        except jinja2.TemplateSyntaxError as exc:
            raise TemplateError.syntax(exc.message or str(exc), exc.lineno) from exc
        return cls(compiled)

    def render(self, pull_requests: cabc.Sequence[PullRequest]) -> str:
        """Render the template for ``pull_requests`` in the given order.

        Any exception raised while evaluating the template, including errors
        from filters or arithmetic in user code, becomes
        :class:`TemplateError`.
        """
        try:
            return self._template.render({TEMPLATE_NAME: list(pull_requests)})
        except Exception as exc:
            raise TemplateError.render_failed(str(exc)) from exc


def sort_by_created_at(
    pull_requests: cabc.Iterable[PullRequest],
) -> list[PullRequest]:
    """Return merge requests oldest first.

    The sort is stable, so merge requests created at the same instant keep
    their input order.
    """
    return sorted(pull_requests, key=operator.attrgetter("created_at"))


def render_pull_requests(
    template: DigestTemplate | str,
    pull_requests: cabc.Sequence[PullRequest],
) -> str:
    """Render ``pull_requests`` through ``template``.

    Callers are expected to pass merge requests already ordered with
    :func:`sort_by_created_at`; no reordering happens here.

    Raises
    ------
    TemplateError
        If the template is malformed or rendering fails.

    """
    compiled = (
        template
        if isinstance(template, DigestTemplate)
        else DigestTemplate.from_source(template)
    )
    return compiled.render(pull_requests)


__all__ = [
    "TEMPLATE_NAME",
    "DigestTemplate",
    "render_pull_requests",
    "sort_by_created_at",
]
