"""Environment-driven configuration for a digest run.

Reads the following environment variables:

- ``PRDIGEST_NOTIFIER_CONFIG``: JSON document listing channel subscriptions,
  ``{"notifiers": [{"channel": "team-a", "projects": ["42", "group/app"]}]}``
- ``PRDIGEST_REPORT_TEMPLATE``: Jinja2 template text, or
- ``PRDIGEST_REPORT_TEMPLATE_FILE``: path to a file holding the template
- ``PRDIGEST_GITLAB_BASE_URL`` and ``PRDIGEST_GITLAB_TOKEN``
- ``PRDIGEST_SLACK_TOKEN`` and optional ``PRDIGEST_SLACK_BASE_URL``
- ``PRDIGEST_HTTP_TIMEOUT_S``: per-request timeout (default 30)
- ``PRDIGEST_MAX_CONCURRENCY``: concurrent project fetches (default 4)
- ``PRDIGEST_RUN_TIMEOUT_S``: optional deadline for the whole run

Every problem is reported as :class:`~prdigest.errors.ConfigError` before any
network activity takes place.
"""

from __future__ import annotations

import dataclasses
import os
import typing as typ
from pathlib import Path

import msgspec

from prdigest.common.http import DEFAULT_TIMEOUT_S, validate_base_url
from prdigest.digest.pipeline import DigestPipelineConfig
from prdigest.errors import ConfigError, TemplateError
from prdigest.gitlab.client import GitLabConfig
from prdigest.models import ChannelSubscription
from prdigest.rendering import DigestTemplate
from prdigest.slack.notifier import SlackConfig

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_ENV_NOTIFIER_CONFIG = "PRDIGEST_NOTIFIER_CONFIG"
_ENV_TEMPLATE = "PRDIGEST_REPORT_TEMPLATE"
_ENV_TEMPLATE_FILE = "PRDIGEST_REPORT_TEMPLATE_FILE"
_ENV_GITLAB_BASE_URL = "PRDIGEST_GITLAB_BASE_URL"
_ENV_GITLAB_TOKEN = "PRDIGEST_GITLAB_TOKEN"  # noqa: S105 - variable name
_ENV_SLACK_BASE_URL = "PRDIGEST_SLACK_BASE_URL"
_ENV_SLACK_TOKEN = "PRDIGEST_SLACK_TOKEN"  # noqa: S105 - variable name
_ENV_HTTP_TIMEOUT = "PRDIGEST_HTTP_TIMEOUT_S"
_ENV_MAX_CONCURRENCY = "PRDIGEST_MAX_CONCURRENCY"
_ENV_RUN_TIMEOUT = "PRDIGEST_RUN_TIMEOUT_S"

_DEFAULT_SLACK_BASE_URL = "https://slack.com"
_DEFAULT_MAX_CONCURRENCY = 4


class _NotifierEntry(msgspec.Struct, forbid_unknown_fields=True):
    channel: str
    projects: list[str]


class _NotifierDocument(msgspec.Struct, forbid_unknown_fields=True):
    notifiers: list[_NotifierEntry]


def parse_subscriptions(raw: str | bytes) -> tuple[ChannelSubscription, ...]:
    """Decode and validate the notifier subscription JSON document.

    Parameters
    ----------
    raw
        JSON text of the form ``{"notifiers": [{"channel", "projects"}]}``.

    Returns
    -------
    tuple[ChannelSubscription, ...]
        Subscriptions in document order.

    Raises
    ------
    ConfigError
        If the document is malformed, declares no notifiers, or contains an
        empty channel name or project id.

    """
    try:
        document = msgspec.json.decode(raw, type=_NotifierDocument)
    except msgspec.DecodeError as exc:
        raise ConfigError.invalid_notifiers(str(exc)) from exc

    if not document.notifiers:
        raise ConfigError.invalid_notifiers("at least one notifier is required")

    subscriptions: list[ChannelSubscription] = []
    for index, entry in enumerate(document.notifiers):
        channel = entry.channel.strip()
        if not channel:
            detail = f"notifiers[{index}].channel must be non-empty"
            raise ConfigError.invalid_notifiers(detail)
        projects = tuple(project.strip() for project in entry.projects)
        if not all(projects):
            detail = f"notifiers[{index}].projects must not contain empty ids"
            raise ConfigError.invalid_notifiers(detail)
        subscriptions.append(ChannelSubscription(channel=channel, projects=projects))
    return tuple(subscriptions)


def _require(env: cabc.Mapping[str, str], name: str) -> str:
    raw = env.get(name)
    if raw is None:
        raise ConfigError.missing(name)
    value = raw.strip()
    if not value:
        raise ConfigError.empty(name)
    return value


def _positive_float(
    env: cabc.Mapping[str, str], name: str, default: float | None
) -> float | None:
    raw = env.get(name, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError.invalid_number(name, raw, "Must be a number") from exc
    if value <= 0:
        raise ConfigError.invalid_number(name, raw, "Must be positive")
    return value


def _positive_int(env: cabc.Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError.invalid_number(name, raw, "Must be an integer") from exc
    if value < 1:
        raise ConfigError.invalid_number(name, raw, "Must be a positive integer")
    return value


def _load_template_source(env: cabc.Mapping[str, str]) -> str:
    inline = env.get(_ENV_TEMPLATE, "")
    if inline.strip():
        return inline

    path_value = env.get(_ENV_TEMPLATE_FILE, "").strip()
    if not path_value:
        raise ConfigError.missing(f"{_ENV_TEMPLATE} or {_ENV_TEMPLATE_FILE}")
    try:
        return Path(path_value).read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"{_ENV_TEMPLATE_FILE} could not be read: {exc}"
        raise ConfigError(msg) from exc


def compile_template(source: str) -> DigestTemplate:
    """Compile a report template, reporting syntax errors as ``ConfigError``."""
    try:
        return DigestTemplate.from_source(source)
    except TemplateError as exc:
        raise ConfigError.invalid_template(exc) from exc


@dataclasses.dataclass(frozen=True, slots=True)
class DigestConfig:
    """Validated inputs for one digest run.

    Attributes
    ----------
    subscriptions
        Channel subscriptions in delivery order.
    template
        Compiled report template.
    gitlab
        GitLab connection settings.
    slack
        Slack connection settings.
    pipeline
        Concurrency and deadline settings.

    """

    subscriptions: tuple[ChannelSubscription, ...]
    template: DigestTemplate
    gitlab: GitLabConfig
    slack: SlackConfig
    pipeline: DigestPipelineConfig = dataclasses.field(
        default_factory=DigestPipelineConfig
    )

    @classmethod
    def from_env(cls, env: cabc.Mapping[str, str] | None = None) -> DigestConfig:
        """Build configuration from environment variables.

        Parameters
        ----------
        env
            Mapping to read instead of ``os.environ``; used by tests.

        Raises
        ------
        ConfigError
            If any required value is missing or any value is malformed.

        """
        source = os.environ if env is None else env

        subscriptions = parse_subscriptions(_require(source, _ENV_NOTIFIER_CONFIG))
        template = compile_template(_load_template_source(source))

        timeout_s = _positive_float(source, _ENV_HTTP_TIMEOUT, DEFAULT_TIMEOUT_S)
        gitlab = GitLabConfig(
            base_url=validate_base_url(
                _ENV_GITLAB_BASE_URL, _require(source, _ENV_GITLAB_BASE_URL)
            ),
            token=_require(source, _ENV_GITLAB_TOKEN),
            timeout_s=timeout_s or DEFAULT_TIMEOUT_S,
        )
        slack = SlackConfig(
            token=_require(source, _ENV_SLACK_TOKEN),
            base_url=validate_base_url(
                _ENV_SLACK_BASE_URL,
                source.get(_ENV_SLACK_BASE_URL, "").strip() or _DEFAULT_SLACK_BASE_URL,
            ),
            timeout_s=timeout_s or DEFAULT_TIMEOUT_S,
        )
        pipeline = DigestPipelineConfig(
            max_concurrency=_positive_int(
                source, _ENV_MAX_CONCURRENCY, _DEFAULT_MAX_CONCURRENCY
            ),
            run_timeout_s=_positive_float(source, _ENV_RUN_TIMEOUT, None),
        )
        return cls(
            subscriptions=subscriptions,
            template=template,
            gitlab=gitlab,
            slack=slack,
            pipeline=pipeline,
        )
