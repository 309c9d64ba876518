"""HTTP settings shared by the GitLab and Slack clients."""

from __future__ import annotations

import urllib.parse

from prdigest.errors import ConfigError

# Fallback per-request timeout for callers that carry no deadline of their own
DEFAULT_TIMEOUT_S = 30.0


def validate_base_url(name: str, value: str) -> str:
    """Return ``value`` without a trailing slash if it is an http(s) URL.

    Raises
    ------
    ConfigError
        If the value is empty or not an absolute http(s) URL.

    """
    stripped = value.strip()
    if not stripped:
        raise ConfigError.empty(name)
    parsed = urllib.parse.urlparse(stripped)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigError.invalid_url(name, value)
    return stripped.rstrip("/")


def bearer_headers(token: str) -> dict[str, str]:
    """Return the authorization header for a static bearer token."""
    return {"Authorization": f"Bearer {token}"}
