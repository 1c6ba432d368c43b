"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from typing import Any

from flask import Flask

from authsession.core.config import BaseConfig, get_config
from authsession.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    redis_client: Any | None = None,
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config object or import path; defaults to the ``APP_ENV`` selection.
    :param overrides: Extra settings applied after ``config`` (tests use this).
    :param redis_client: Pre-built Redis client used instead of ``REDIS_URL``.
    :raises ConfigurationError: If the signing secret or the session backend is misconfigured.
    """

    app = Flask(__name__)

    app.config.from_object(get_config() if config is None else config)
    if overrides:
        app.config.update(overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from authsession.core import extensions

    extensions.init_app(app, redis_override=redis_client)

    init_logging(app)

    from authsession.core import services

    services.init_app(app)

    from authsession.core import cors

    cors.init_app(app)

    from authsession.api import init_app as init_api

    init_api(app)

    from authsession.core import errors

    errors.init_app(app)

    from authsession import cli as app_cli

    app_cli.init_app(app)

    return app
