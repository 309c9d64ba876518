"""Slack Web API notifier that posts digests with ``chat.postMessage``."""

from __future__ import annotations

import dataclasses
import typing as typ

import httpx
import msgspec

from prdigest.common.http import DEFAULT_TIMEOUT_S, bearer_headers, validate_base_url
from prdigest.errors import (
    ConfigError,
    RemoteError,
    RemoteRejectedError,
    ResponseDecodeError,
    TransportError,
)
from prdigest.logging import get_logger, log_debug

_DEFAULT_BASE_URL = "https://slack.com"
_SERVICE = "Slack"

logger = get_logger(__name__)


class ChannelNotifier(typ.Protocol):
    """Interface for delivering rendered text to a named channel."""

    async def notify(
        self, channel: str, text: str, *, timeout: float | None = None
    ) -> None:
        """Deliver ``text`` to ``channel`` or raise a ``PrDigestError``."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class SlackConfig:
    """Connection settings for the Slack Web API."""

    token: str
    base_url: str = _DEFAULT_BASE_URL
    timeout_s: float = DEFAULT_TIMEOUT_S


class _TextObject(msgspec.Struct):
    type: str
    text: str


class _SectionBlock(msgspec.Struct):
    type: str
    text: _TextObject


class _PostMessageRequest(msgspec.Struct):
    channel: str
    blocks: list[_SectionBlock]


class _PostMessageResponse(msgspec.Struct):
    ok: bool = False
    error: str | None = None


_ENCODER = msgspec.json.Encoder()
_RESPONSE_DECODER = msgspec.json.Decoder(_PostMessageResponse)


def build_post_message(channel: str, text: str) -> bytes:
    """Encode a single mrkdwn section message for ``channel``.

    The text is embedded verbatim; only JSON string escaping is applied.
    """
    request = _PostMessageRequest(
        channel=channel,
        blocks=[
            _SectionBlock(
                type="section",
                text=_TextObject(type="mrkdwn", text=text),
            )
        ],
    )
    return _ENCODER.encode(request)


class SlackNotifier:
    """Slack implementation of :class:`ChannelNotifier`.

    Every :meth:`notify` call sends exactly one message; nothing is batched
    or retried.

    Parameters
    ----------
    config
        Bot token, API base URL, and default timeout.
    http_client
        Optional ``httpx.AsyncClient`` for testing. When omitted the
        instance creates and owns its own client.

    """

    def __init__(
        self,
        config: SlackConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Validate the configuration and prepare the HTTP client."""
        if not config.token.strip():
            raise ConfigError.empty("Slack token")
        base_url = validate_base_url("Slack base URL", config.base_url)
        self._endpoint = f"{base_url}/api/chat.postMessage"
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def notify(
        self, channel: str, text: str, *, timeout: float | None = None
    ) -> None:
        """Post ``text`` to ``channel``.

        Raises
        ------
        TransportError
            On network failures and timeouts.
        RemoteError
            If Slack answers with a non-2xx status.
        ResponseDecodeError
            If the response body is not a JSON object.
        RemoteRejectedError
            If Slack reports ``"ok": false``.

        """
        headers = bearer_headers(self._config.token)
        headers["Content-Type"] = "application/json; charset=utf-8"
        try:
            response = await self._client.post(
                self._endpoint,
                content=build_post_message(channel, text),
                headers=headers,
                timeout=self._config.timeout_s if timeout is None else timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportError.timeout(self._endpoint) from exc
        except httpx.RequestError as exc:
            raise TransportError.network_error(self._endpoint, str(exc)) from exc

        if not response.is_success:
            raise RemoteError.http_error(_SERVICE, response.status_code)

        try:
            result = _RESPONSE_DECODER.decode(response.content)
        except msgspec.DecodeError as exc:
            raise ResponseDecodeError.invalid_body(
                _SERVICE, response.text, str(exc)
            ) from exc

        if not result.ok:
            raise RemoteRejectedError.not_ok(_SERVICE, result.error)
        log_debug(logger, "Posted %d characters to %s", len(text), channel)
