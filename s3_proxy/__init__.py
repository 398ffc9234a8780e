"""HTTP gateway that serves objects from a single S3 bucket."""

from .app import create_app
from .errors import (
    BackendError,
    ConfigError,
    FetchError,
    FetchTimeoutError,
    ProxyError,
    ReadError,
    SessionError,
)
from .fetcher import ObjectFetcher
from .proxy import S3Proxy
from .settings import ProxySettings, load_settings_from_env

__all__ = [
    "BackendError",
    "ConfigError",
    "FetchError",
    "FetchTimeoutError",
    "ObjectFetcher",
    "ProxyError",
    "ProxySettings",
    "ReadError",
    "S3Proxy",
    "SessionError",
    "create_app",
    "load_settings_from_env",
]
