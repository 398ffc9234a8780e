from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from s3_proxy import ObjectFetcher, S3Proxy, load_settings_from_env

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

    from botocore.client import BaseClient
    from s3_proxy import ProxySettings

PROXY_ENV_VARS = (
    "BUCKET",
    "REGION",
    "TIMEOUT",
    "PORT",
    "HOST",
    "ENDPOINT",
    "LOG_LEVEL",
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def clean_proxy_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep proxy settings from the outer environment out of the tests."""
    for name in PROXY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings(
    monkeypatch: pytest.MonkeyPatch,
) -> Callable[..., ProxySettings]:
    """Build settings the way the proxy does, through the environment."""

    def factory(**env: str) -> ProxySettings:
        env.setdefault("BUCKET", "test-bucket")
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return load_settings_from_env()

    return factory


class FakeBody:
    def __init__(self, content: bytes, error: Exception | None = None):
        self._content = content
        self._error = error
        self.closed = False

    def read(self) -> bytes:
        if self._error is not None:
            raise self._error
        return self._content

    def close(self) -> None:
        self.closed = True


def fake_s3_client(
    content: bytes = b"",
    *,
    error: Exception | None = None,
    delay: float = 0.0,
    body_error: Exception | None = None,
) -> MagicMock:
    """A stand-in for a boto3 S3 client whose get_object is scripted."""
    client = MagicMock()
    client.bodies = []

    def get_object(**kwargs):
        if delay:
            time.sleep(delay)
        if error is not None:
            raise error
        body = FakeBody(content, body_error)
        client.bodies.append(body)
        return {"Body": body, "ContentLength": len(content)}

    client.get_object.side_effect = get_object
    return client


@pytest.fixture
def s3_stub() -> Callable[..., MagicMock]:
    return fake_s3_client


@pytest.fixture
def make_proxy(
    make_settings: Callable[..., ProxySettings],
) -> Callable[..., S3Proxy]:
    def factory(client: BaseClient, **env: str) -> S3Proxy:
        settings = make_settings(**env)
        fetcher = ObjectFetcher(settings, client_factory=lambda _settings: client)
        return S3Proxy(settings, fetcher=fetcher)

    return factory


@dataclass(frozen=True)
class MinioServer:
    url: str
    user: str
    password: str

    def client(self, **config: Any) -> BaseClient:
        return boto3.client(
            "s3",
            endpoint_url=self.url,
            aws_access_key_id=self.user,
            aws_secret_access_key=self.password,
            region_name="us-east-1",
            config=BotoConfig(s3={"addressing_style": "path"}, **config),
        )


def _docker_available() -> bool:
    return bool(os.getenv("DOCKER_HOST")) or os.path.exists("/var/run/docker.sock")


@pytest.fixture(scope="session")
def minio_server(request: pytest.FixtureRequest) -> Generator[MinioServer]:
    """A throwaway MinIO container, shared by the whole session."""
    if not _docker_available():
        pytest.skip("docker is required for MinIO integration tests")

    user = os.getenv("MINIO_ACCESS_KEY", "minio")
    password = os.getenv("MINIO_SECRET_KEY", "minio123")
    docker_service = request.getfixturevalue("docker_service")

    def ready(container) -> bool:
        url = f"http://{container.host}:{container.port}"
        client = MinioServer(url, user, password).client(
            connect_timeout=2, read_timeout=2, retries={"max_attempts": 1}
        )
        try:
            client.list_buckets()
        except (BotoCoreError, ClientError):
            return False
        return True

    with docker_service.run(
        image="quay.io/minio/minio",
        name="s3-proxy-minio",
        command="server /data",
        container_port=9000,
        timeout=30,
        pause=0.5,
        env={"MINIO_ROOT_USER": user, "MINIO_ROOT_PASSWORD": password},
        check=ready,
    ) as container:
        yield MinioServer(f"http://{container.host}:{container.port}", user, password)


@pytest.fixture
def s3_client(minio_server: MinioServer) -> BaseClient:
    """A boto3 client used by tests to seed MinIO directly."""
    return minio_server.client()


@pytest.fixture
def minio_env(
    minio_server: MinioServer,
    monkeypatch: pytest.MonkeyPatch,
) -> dict[str, str]:
    """Point the proxy at MinIO through the environment."""
    env = {
        "ENDPOINT": minio_server.url,
        "REGION": "us-east-1",
        "AWS_ACCESS_KEY_ID": minio_server.user,
        "AWS_SECRET_ACCESS_KEY": minio_server.password,
    }
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return env


@pytest.fixture
def make_bucket(s3_client: BaseClient) -> Callable[[str], None]:
    def create(bucket: str) -> None:
        try:
            s3_client.create_bucket(Bucket=bucket)
        except ClientError as error:
            code = error.response.get("Error", {}).get("Code")
            if code not in {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}:
                raise

    return create
