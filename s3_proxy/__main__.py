"""Run the S3 proxy: ``python -m s3_proxy``."""

from __future__ import annotations

import logging
import sys

import uvicorn

from .app import create_app
from .errors import ConfigError
from .proxy import S3Proxy
from .settings import load_settings_from_env

LOG = logging.getLogger("s3_proxy")


def main() -> None:
    try:
        settings = load_settings_from_env()
        port = int(settings.port)
    except ConfigError as error:
        LOG.error("%s", error)
        sys.exit(1)
    except ValueError:
        LOG.error("Invalid listen port: %r", settings.port)
        sys.exit(1)

    app = create_app(proxy=S3Proxy(settings))
    LOG.info("S3 Proxy Server Listening on: %s:%s", settings.host, settings.port)

    uvicorn.run(
        app,
        host=settings.host,
        port=port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
