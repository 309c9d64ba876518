"""Unit tests for digest template rendering."""

from __future__ import annotations

import pytest

from prdigest.errors import TemplateError
from prdigest.rendering import DigestTemplate, render_pull_requests, sort_by_created_at
from tests.helpers.digest_fakes import make_pull_request

_LINK_TEMPLATE = (
    "{% for pr in pull_requests %}"
    "<{{ pr.url }}|{{ pr.title }}> by {{ pr.author.username }}\n"
    "{% endfor %}"
)


def test_render_lists_pull_requests_in_given_order() -> None:
    """Rendering preserves the caller's order and exposes every field."""
    prs = [
        make_pull_request("Fix login", minutes=5, author="alice"),
        make_pull_request("Add API", minutes=1, author="bob"),
    ]

    text = render_pull_requests(_LINK_TEMPLATE, prs)

    assert text == (
        "<https://gitlab.example.test/merge_requests/fix-login|Fix login> by alice\n"
        "<https://gitlab.example.test/merge_requests/add-api|Add API> by bob\n"
    )


def test_sort_orders_oldest_first() -> None:
    """Merge requests are ordered by creation time ascending."""
    newer = make_pull_request("Newer", minutes=30)
    older = make_pull_request("Older", minutes=0)
    middle = make_pull_request("Middle", minutes=10)

    assert sort_by_created_at([newer, older, middle]) == [older, middle, newer]


def test_sort_keeps_input_order_for_ties() -> None:
    """Equal timestamps keep their original relative order."""
    first = make_pull_request("First", minutes=5)
    second = make_pull_request("Second", minutes=5)
    earliest = make_pull_request("Earliest", minutes=0)

    assert sort_by_created_at([first, second, earliest]) == [earliest, first, second]


def test_empty_list_renders_template_without_entries() -> None:
    """An empty digest still renders the surrounding template text."""
    template = DigestTemplate.from_source(
        "Open MRs: {{ pull_requests | length }}\n" + _LINK_TEMPLATE
    )
    assert template.render([]) == "Open MRs: 0\n"


def test_created_at_supports_formatting() -> None:
    """Timestamps are datetimes and can be formatted in the template."""
    text = render_pull_requests(
        "{% for pr in pull_requests %}{{ pr.created_at.strftime('%Y-%m-%d') }}"
        "{% endfor %}",
        [make_pull_request("Dated")],
    )
    assert text == "2024-03-01"


def test_mrkdwn_is_not_escaped() -> None:
    """Output is plain text; HTML-style escaping is not applied."""
    text = render_pull_requests(
        "{% for pr in pull_requests %}{{ pr.title }}{% endfor %}",
        [make_pull_request("Use <b> & <i>")],
    )
    assert text == "Use <b> & <i>"


def test_undefined_field_raises_template_error() -> None:
    """Referencing a missing attribute fails instead of rendering blanks."""
    template = DigestTemplate.from_source(
        "{% for pr in pull_requests %}{{ pr.reviewer }}{% endfor %}"
    )
    with pytest.raises(TemplateError, match="rendering failed"):
        template.render([make_pull_request("No reviewer")])


def test_malformed_template_raises_template_error() -> None:
    """Syntax errors surface as TemplateError at compile time."""
    with pytest.raises(TemplateError, match="syntax error"):
        DigestTemplate.from_source("{% for pr in pull_requests %}{{ pr.title }}")


@pytest.mark.parametrize(
    "source",
    [
        "{{ 100 // (pull_requests | length) }}",
        "{{ {}['missing'] }}",
        "{{ (10 ** 400) | float }}",
    ],
)
def test_errors_raised_by_template_code_become_template_errors(source: str) -> None:
    """Arithmetic, lookup, and overflow failures in user code are wrapped."""
    template = DigestTemplate.from_source(source)
    with pytest.raises(TemplateError, match="rendering failed"):
        template.render([])
