"""Error kinds raised by the digest clients, renderer, and configuration.

Every error derives from :class:`PrDigestError` so callers that isolate
per-project and per-channel failures have a single catch point.
"""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

# Preview length for response bodies quoted in error messages
_BODY_PREVIEW_LIMIT = 100


def _preview(body: str) -> str:
    if len(body) > _BODY_PREVIEW_LIMIT:
        return body[:_BODY_PREVIEW_LIMIT] + "..."
    return body


class PrDigestError(Exception):
    """Base exception for all prdigest errors."""


class InvalidOptionsError(PrDigestError):
    """Raised when merge request filter options hold an unrecognised value."""

    @classmethod
    def unexpected_value(
        cls, field: str, value: object, allowed: cabc.Iterable[str]
    ) -> InvalidOptionsError:
        """Return an error for an enum field outside its recognised set."""
        allowed_str = ", ".join(f"'{item}'" for item in allowed)
        return cls(f"unexpected {field}: {value!r} (expected one of {allowed_str})")

    @classmethod
    def invalid_page_size(cls, value: int) -> InvalidOptionsError:
        """Return an error for a negative page size."""
        return cls(f"per_page must not be negative, got {value}")


class TransportError(PrDigestError):
    """Raised when a request fails below HTTP (DNS, TLS, connection, timeout)."""

    @classmethod
    def timeout(cls, url: str) -> TransportError:
        """Return an error for a request that exceeded its timeout."""
        return cls(f"request to {url} timed out")

    @classmethod
    def network_error(cls, url: str, detail: str) -> TransportError:
        """Return an error for a network-level request failure."""
        return cls(f"request to {url} failed: {detail}")

    @classmethod
    def cancelled(cls) -> TransportError:
        """Return an error for a request aborted by run cancellation."""
        return cls("request cancelled before completion")


class RemoteError(PrDigestError):
    """Raised when a remote API answers with a non-success HTTP status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and the HTTP status code, if known."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, service: str, status_code: int) -> RemoteError:
        """Return an error for a non-2xx HTTP response."""
        return cls(f"{service} HTTP {status_code}", status_code=status_code)


class ResponseDecodeError(PrDigestError):
    """Raised when a response body does not have the expected JSON shape."""

    @classmethod
    def invalid_body(cls, service: str, body: str, detail: str) -> ResponseDecodeError:
        """Return an error quoting a preview of the undecodable body."""
        msg = f"{service} response could not be decoded ({detail}): {_preview(body)}"
        return cls(msg)


class RemoteRejectedError(PrDigestError):
    """Raised when a remote call succeeds over HTTP but is not accepted."""

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        """Initialise with a message and the platform's rejection reason."""
        self.reason = reason
        super().__init__(message)

    @classmethod
    def not_ok(cls, service: str, reason: str | None) -> RemoteRejectedError:
        """Return an error for a response whose success flag is false."""
        detail = reason or "no reason given"
        return cls(f"{service} rejected the request: {detail}", reason=reason)


class TemplateError(PrDigestError):
    """Raised when a digest template cannot be compiled or rendered."""

    @classmethod
    def syntax(cls, detail: str, lineno: int | None = None) -> TemplateError:
        """Return an error for a malformed template."""
        where = f" on line {lineno}" if lineno is not None else ""
        return cls(f"template syntax error{where}: {detail}")

    @classmethod
    def render_failed(cls, detail: str) -> TemplateError:
        """Return an error for a failure while rendering a template."""
        return cls(f"template rendering failed: {detail}")


class ConfigError(PrDigestError):
    """Raised when configuration is missing or malformed."""

    @classmethod
    def missing(cls, name: str) -> ConfigError:
        """Return an error for a required environment variable."""
        return cls(f"{name} environment variable is required")

    @classmethod
    def empty(cls, name: str) -> ConfigError:
        """Return an error for a value that must be non-empty."""
        return cls(f"{name} must be non-empty")

    @classmethod
    def invalid_url(cls, name: str, value: str) -> ConfigError:
        """Return an error for a base URL that is not http(s)."""
        return cls(f"{name} must be a valid http(s) URL, got: {value!r}")

    @classmethod
    def invalid_number(cls, name: str, value: str, constraint: str) -> ConfigError:
        """Return an error for a numeric setting outside its constraint."""
        return cls(f"Invalid {name} {value!r}. {constraint}")

    @classmethod
    def invalid_notifiers(cls, detail: str) -> ConfigError:
        """Return an error for a malformed notifier subscription document."""
        return cls(f"Invalid notifier configuration: {detail}")

    @classmethod
    def invalid_template(cls, exc: TemplateError) -> ConfigError:
        """Return an error for a report template that does not compile."""
        return cls(f"Invalid report template: {exc}")
