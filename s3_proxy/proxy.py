from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from litestar.response import Response

from .addressing import remote_address_of, resolve_client_ip
from .errors import FetchError, FetchTimeoutError, SessionError
from .fetcher import ObjectFetcher
from .settings import format_duration, load_settings_from_env

if TYPE_CHECKING:
    from litestar import Request

    from .settings import ProxySettings

LOG = logging.getLogger("s3_proxy.proxy")
ACCESS_LOG = logging.getLogger("s3_proxy.access")

OBJECT_MEDIA_TYPE = "application/octet-stream"
SIZE_FALLBACK = "cached"


class S3Proxy:
    """Serves ``GET /getObject?key=...`` from a single bucket."""

    def __init__(
        self,
        settings: ProxySettings,
        fetcher: ObjectFetcher | None = None,
        logger: logging.Logger | None = None,
        access_logger: logging.Logger | None = None,
    ):
        self._settings = settings
        self._log = logger or LOG
        self._access_log = access_logger or ACCESS_LOG
        self._fetcher = fetcher or ObjectFetcher(settings)

    @property
    def settings(self) -> ProxySettings:
        return self._settings

    def describe(self) -> str:
        endpoint = self._settings.endpoint or "aws"
        return (
            f"bucket={self._settings.bucket}, region={self._settings.region}, "
            f"endpoint={endpoint}, timeout={self._settings.describe_timeout()}"
        )

    async def startup(self) -> None:
        self._log.info("S3 proxy ready (%s)", self.describe())

    async def shutdown(self) -> None:
        await self._fetcher.close()

    async def get_object(self, request: Request) -> Response:
        key = request.query_params.get("key", "")
        self._log.debug("get_object key=%r", key)

        try:
            client = await self._fetcher.session()
        except SessionError as error:
            self._log.error("not able to create an S3 session, %s", error)
            # No status is forced here; the response keeps the framework default.
            return Response(content=b"", media_type=OBJECT_MEDIA_TYPE)

        start = datetime.now(UTC)
        started = time.perf_counter()
        try:
            body = await self._fetcher.fetch(key, client=client)
        except FetchTimeoutError as error:
            self._log.warning("download canceled due to timeout, %s", error)
            response = Response(
                content=b"", status_code=408, media_type=OBJECT_MEDIA_TYPE
            )
        except FetchError as error:
            self._log.warning("failed to download the object, %s", error)
            response = Response(
                content=b"", status_code=502, media_type=OBJECT_MEDIA_TYPE
            )
        else:
            response = Response(
                content=body, status_code=200, media_type=OBJECT_MEDIA_TYPE
            )
        elapsed = time.perf_counter() - started

        self._log_access(request, response, start, elapsed)
        return response

    def _log_access(
        self,
        request: Request,
        response: Response,
        start: datetime,
        elapsed: float,
    ) -> None:
        ip = resolve_client_ip(request.headers, remote_address_of(request))
        # Content-Length is only known once the response is rendered.
        size = response.headers.get("Content-Length") or SIZE_FALLBACK
        self._access_log.info(
            "%s - %s - %s - %s - %s - %s bytes",
            start.strftime("%Y-%m-%dT%H:%M:%SZ"),
            ip,
            request.method,
            request.url.path,
            format_duration(elapsed),
            size,
        )

    @classmethod
    def from_env(cls) -> S3Proxy:
        """Create an S3Proxy from environment variables.

        Raises:
            ConfigError: if no bucket name is configured.
        """
        return cls(load_settings_from_env())
