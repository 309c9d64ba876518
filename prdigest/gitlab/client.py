"""GitLab REST client for listing a project's merge requests."""

from __future__ import annotations

import dataclasses
import datetime as dt
import typing as typ
import urllib.parse

import httpx
import msgspec

from prdigest.common.http import DEFAULT_TIMEOUT_S, bearer_headers, validate_base_url
from prdigest.errors import (
    ConfigError,
    RemoteError,
    ResponseDecodeError,
    TransportError,
)
from prdigest.logging import get_logger, log_debug
from prdigest.models import Author, PullRequest

if typ.TYPE_CHECKING:
    from .options import MergeRequestOptions

_SERVICE = "GitLab"

logger = get_logger(__name__)


class PullRequestSource(typ.Protocol):
    """Interface for fetching a project's open merge requests."""

    async def list_pull_requests(
        self,
        project_id: str,
        options: MergeRequestOptions,
        *,
        timeout: float | None = None,
    ) -> list[PullRequest]:
        """Return merge requests for ``project_id`` matching ``options``."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitLabConfig:
    """Connection settings for the GitLab REST API.

    Attributes
    ----------
    base_url
        Instance root, for example ``https://gitlab.example.com``.
    token
        Personal or project access token sent as a bearer credential.
    timeout_s
        Per-request timeout applied when the caller passes no deadline.

    """

    base_url: str
    token: str
    timeout_s: float = DEFAULT_TIMEOUT_S


class _AuthorPayload(msgspec.Struct):
    username: str


class _MergeRequestPayload(msgspec.Struct):
    title: str
    web_url: str
    author: _AuthorPayload
    # Naive timestamps cannot be ordered against aware ones from other projects
    created_at: typ.Annotated[dt.datetime, msgspec.Meta(tz=True)]

    def to_pull_request(self) -> PullRequest:
        return PullRequest(
            title=self.title,
            url=self.web_url,
            author=Author(username=self.author.username),
            created_at=self.created_at,
        )


_MERGE_REQUESTS_DECODER = msgspec.json.Decoder(list[_MergeRequestPayload])


def _decode_merge_requests(response: httpx.Response) -> list[PullRequest]:
    try:
        payloads = _MERGE_REQUESTS_DECODER.decode(response.content)
    except msgspec.DecodeError as exc:
        detail = str(exc)
        raise ResponseDecodeError.invalid_body(_SERVICE, response.text, detail) from exc
    return [payload.to_pull_request() for payload in payloads]


class GitLabClient:
    """GitLab implementation of :class:`PullRequestSource`.

    Each call issues exactly one ``GET`` request; there is no retry and no
    pagination beyond the configured page size.

    Parameters
    ----------
    config
        API base URL, token, and default timeout.
    http_client
        Optional ``httpx.AsyncClient`` for testing. When omitted the
        instance creates and owns its own client.

    """

    def __init__(
        self,
        config: GitLabConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Validate the configuration and prepare the HTTP client."""
        if not config.token.strip():
            raise ConfigError.empty("GitLab token")
        self._base_url = validate_base_url("GitLab base URL", config.base_url)
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _merge_requests_url(self, project_id: str) -> str:
        encoded = urllib.parse.quote(project_id, safe="")
        return f"{self._base_url}/api/v4/projects/{encoded}/merge_requests"

    async def list_pull_requests(
        self,
        project_id: str,
        options: MergeRequestOptions,
        *,
        timeout: float | None = None,
    ) -> list[PullRequest]:
        """List a project's merge requests matching ``options``.

        Parameters
        ----------
        project_id
            Numeric project id or ``namespace/project`` path.
        options
            Filters serialised into the query string.
        timeout
            Remaining caller deadline in seconds; the configured default
            applies when ``None``.

        Returns
        -------
        list[PullRequest]
            Merge requests in the order GitLab returned them.

        Raises
        ------
        InvalidOptionsError
            If ``options`` holds an unrecognised value.
        TransportError
            On DNS, TLS, connection, or timeout failures.
        RemoteError
            If GitLab answers with a non-2xx status.
        ResponseDecodeError
            If the body is not a JSON array of merge requests.

        """
        params = options.to_query_params()
        url = self._merge_requests_url(project_id)
        try:
            response = await self._client.get(
                url,
                params=params,
                headers=bearer_headers(self._config.token),
                timeout=self._config.timeout_s if timeout is None else timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportError.timeout(url) from exc
        except httpx.RequestError as exc:
            raise TransportError.network_error(url, str(exc)) from exc

        if not response.is_success:
            raise RemoteError.http_error(_SERVICE, response.status_code)
        pull_requests = _decode_merge_requests(response)
        log_debug(
            logger,
            "Listed %d merge requests for project %s",
            len(pull_requests),
            project_id,
        )
        return pull_requests
