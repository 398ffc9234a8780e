from __future__ import annotations

import re

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

NANOSECONDS_PER_SECOND = 1_000_000_000
DEFAULT_TIMEOUT = 10 * NANOSECONDS_PER_SECOND
INT64_MAX = 2**63 - 1
INT64_MIN = -(2**63)

_ATOI = re.compile(r"[+-]?[0-9]+")


class ProxySettings(BaseSettings):
    """Configuration for the object proxy, read once at startup."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        frozen=True,
    )

    bucket: str = Field(validation_alias="BUCKET", min_length=1)
    region: str = Field(default="us-east-1", validation_alias="REGION")
    # Raw duration in nanoseconds, 0 disables the deadline.
    timeout: int = Field(default=DEFAULT_TIMEOUT, validation_alias="TIMEOUT")
    port: str = Field(default="8080", validation_alias="PORT")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    endpoint: str | None = Field(default=None, validation_alias="ENDPOINT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value: object) -> int:
        # TIMEOUT is not scaled to seconds and garbage silently means "no deadline".
        if isinstance(value, int):
            return value
        text = str(value)
        if not _ATOI.fullmatch(text):
            return 0
        # Out-of-range values clamp to the signed 64-bit limits.
        return max(INT64_MIN, min(INT64_MAX, int(text)))

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        return str(value).strip().upper()

    @property
    def timeout_seconds(self) -> float | None:
        """The fetch deadline in seconds, or None when no deadline applies."""
        if self.timeout <= 0:
            return None
        return self.timeout / NANOSECONDS_PER_SECOND

    def describe_timeout(self) -> str:
        seconds = self.timeout_seconds
        if seconds is None:
            return "none"
        return format_duration(seconds)


def format_duration(seconds: float) -> str:
    """Render a duration the way access log lines show it (``1.5s``, ``12.3ms``)."""
    if seconds >= 1:
        return f"{seconds:g}s"
    if seconds >= 1e-3:
        return f"{seconds * 1e3:g}ms"
    if seconds >= 1e-6:
        return f"{seconds * 1e6:g}µs"
    return f"{seconds * 1e9:g}ns"


def load_settings_from_env() -> ProxySettings:
    """Load proxy settings from environment variables.

    Returns:
        ProxySettings populated from ``BUCKET``, ``REGION``, ``TIMEOUT``,
        ``PORT``, ``HOST``, ``ENDPOINT`` and ``LOG_LEVEL``.

    Raises:
        ConfigError: if no bucket name is configured.
    """
    try:
        return ProxySettings()
    except ValidationError as error:
        fields = {str(part) for err in error.errors() for part in err["loc"]}
        if fields & {"bucket", "BUCKET"}:
            msg = "No bucket name provided"
            raise ConfigError(msg) from error
        msg = f"Invalid proxy configuration: {error}"
        raise ConfigError(msg) from error
