from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Any

import anyio
from anyio import to_thread
from boto3.session import Session
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from .errors import (
    BackendError,
    FetchError,
    FetchTimeoutError,
    ReadError,
    SessionError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from botocore.client import BaseClient

    from .settings import ProxySettings

LOG = logging.getLogger("s3_proxy.fetcher")


async def _run_sync(
    func: Callable[[], Any], /, *, abandon_on_cancel: bool = False
) -> Any:
    return await to_thread.run_sync(func, abandon_on_cancel=abandon_on_cancel)


def build_s3_client(settings: ProxySettings) -> BaseClient:
    """Build a boto3 S3 client scoped to the configured region."""
    config_kwargs: dict[str, Any] = {
        "signature_version": "s3v4",
        "retries": {"max_attempts": 3},
    }
    deadline = settings.timeout_seconds
    if deadline is not None:
        config_kwargs["connect_timeout"] = deadline
        config_kwargs["read_timeout"] = deadline
    session = Session(region_name=settings.region)
    return session.client(
        "s3",
        endpoint_url=settings.endpoint,
        config=BotoConfig(**config_kwargs),
    )


def _download(client: BaseClient, bucket: str, key: str) -> bytes:
    result = client.get_object(Bucket=bucket, Key=key)
    body = result["Body"]
    try:
        return body.read()
    except ReadTimeoutError:
        raise
    except (BotoCoreError, OSError) as error:
        msg = f"failed to read s3://{bucket}/{key}: {error}"
        raise ReadError(msg) from error
    finally:
        body.close()


class ObjectFetcher:
    """Reads whole objects from the configured bucket under a deadline.

    The S3 client is built on first use and shared by every request served
    by this fetcher. Failures surface as :class:`~s3_proxy.errors.FetchError`
    subclasses so callers never see botocore exception types.
    """

    def __init__(
        self,
        settings: ProxySettings,
        logger: logging.Logger | None = None,
        client_factory: Callable[[ProxySettings], BaseClient] | None = None,
    ):
        self._settings = settings
        self._log = logger or LOG
        self._client_factory = client_factory or build_s3_client
        self._client: BaseClient | None = None
        self._client_lock = anyio.Lock()

    @property
    def bucket(self) -> str:
        return self._settings.bucket

    async def session(self) -> BaseClient:
        """Return the shared S3 client, building it on first call.

        Raises:
            SessionError: if the client cannot be constructed.
        """
        async with self._client_lock:
            if self._client is None:
                try:
                    self._client = await _run_sync(
                        partial(self._client_factory, self._settings)
                    )
                except (BotoCoreError, ValueError) as error:
                    msg = f"unable to create an S3 client: {error}"
                    raise SessionError(msg) from error
                self._log.debug(
                    "S3 client ready (region=%s, endpoint=%s)",
                    self._settings.region,
                    self._settings.endpoint or "aws",
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await _run_sync(self._client.close)
            self._client = None

    async def fetch(self, key: str, client: BaseClient | None = None) -> bytes:
        """Fetch the full content of ``key``.

        Args:
            key: Object key, passed to the backend unvalidated.
            client: Client returned by :meth:`session`; built if omitted.

        Returns:
            The object body as a single buffer.

        Raises:
            FetchTimeoutError: the deadline elapsed before the object was read.
            BackendError: the storage service reported a failure.
            ReadError: the body could not be drained.
            FetchError: the fetch failed for any other reason.
        """
        if client is None:
            client = await self.session()
        download = partial(_download, client, self.bucket, key)
        deadline = self._settings.timeout_seconds
        try:
            if deadline is None:
                return await _run_sync(download)
            with anyio.fail_after(deadline):
                return await _run_sync(download, abandon_on_cancel=True)
        except TimeoutError as error:
            if deadline is None:
                raise BackendError(str(error)) from error
            msg = f"fetch of s3://{self.bucket}/{key} exceeded {deadline}s"
            raise FetchTimeoutError(msg) from error
        except FetchError:
            raise
        except (ConnectTimeoutError, ReadTimeoutError) as error:
            # Socket timeouts only count as the deadline when one is configured.
            if deadline is None:
                raise BackendError(str(error)) from error
            raise FetchTimeoutError(str(error)) from error
        except ClientError as error:
            details = error.response.get("Error", {})
            code = details.get("Code")
            message = details.get("Message") or str(error)
            self._log.error("Error: %s %s", code, message)
            raise BackendError(message, code=code) from error
        except BotoCoreError as error:
            raise BackendError(str(error)) from error
        except Exception as error:
            msg = f"fetch of s3://{self.bucket}/{key} failed: {error!r}"
            raise FetchError(msg) from error
