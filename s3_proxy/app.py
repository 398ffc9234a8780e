from __future__ import annotations

from litestar import Litestar, Request, Response, get
from litestar.logging.config import LoggingConfig
from litestar.plugins.prometheus import PrometheusConfig, PrometheusController

from .proxy import S3Proxy
from .settings import ProxySettings, load_settings_from_env

prometheus_config = PrometheusConfig(app_name="s3_proxy", prefix="s3_proxy")


def build_logging_config(settings: ProxySettings) -> LoggingConfig:
    return LoggingConfig(
        root={"level": "WARNING", "handlers": ["queue_listener"]},
        loggers={
            "s3_proxy": {
                "level": settings.log_level,
                "handlers": ["queue_listener"],
                "propagate": False,
            },
        },
        log_exceptions="always",
    )


def create_app(
    settings: ProxySettings | None = None,
    proxy: S3Proxy | None = None,
) -> Litestar:
    """Create the S3 proxy ASGI application.

    Settings are read from the environment when neither ``settings`` nor
    ``proxy`` is given, which raises ``ConfigError`` if ``BUCKET`` is unset.
    """
    if proxy is None:
        proxy = S3Proxy(settings or load_settings_from_env())

    @get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @get("/getObject")
    async def get_object(request: Request) -> Response:
        return await proxy.get_object(request)

    async def startup(app: Litestar) -> None:
        await proxy.startup()

    async def shutdown(app: Litestar) -> None:
        await proxy.shutdown()

    return Litestar(
        route_handlers=[health, get_object, PrometheusController],
        on_startup=[startup],
        on_shutdown=[shutdown],
        logging_config=build_logging_config(proxy.settings),
        middleware=[prometheus_config.middleware],
    )
