"""Exceptions raised while resolving configuration and fetching objects."""

from __future__ import annotations


class ProxyError(Exception):
    """Base class for all s3-proxy errors."""


class ConfigError(ProxyError):
    """Raised when the proxy cannot be configured from the environment."""


class SessionError(ProxyError):
    """Raised when no storage client can be built for the configured region."""


class FetchError(ProxyError):
    """A fetch failed for a reason other than the ones below."""


class FetchTimeoutError(FetchError):
    """The fetch was aborted because its deadline elapsed."""


class BackendError(FetchError):
    """The storage service reported a failure."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ReadError(FetchError):
    """The object body could not be drained after a successful GetObject."""
