"""Application factory for the refresh-token session service."""

from __future__ import annotations

from collections.abc import Callable

from flask import Flask

from sessionguard.core.config import BaseConfig, get_config
from sessionguard.core.logger import configure_logging


def _load_config(
    app: Flask, config: str | type[BaseConfig] | object | None, instance_file: str | None
) -> None:
    app.config.from_object(get_config() if config is None else config)
    # instance/config.py overrides, e.g. secrets kept out of the repository
    if instance_file:
        app.config.from_pyfile(instance_file, silent=True)


def _init_steps() -> list[Callable[[Flask], None]]:
    """
    Ordered ``init_app`` hooks.

    ProxyFix runs first so the client address recorded on tokens is the
    forwarded one. The session wiring needs the extensions (database, JWT,
    Redis) bound, and error handlers are registered after the blueprints.
    """
    from sessionguard import api, cli
    from sessionguard.core import cors, errors, extensions, logger, proxy, sessions

    return [
        proxy.init_app,
        extensions.init_app,
        logger.init_app,
        cors.init_app,
        sessions.init_app,
        api.init_app,
        errors.init_app,
        cli.init_app,
    ]


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """
    Build the Flask application.

    :param config: Import path, class or object passed to
        :meth:`flask.Config.from_object`; defaults to the ``APP_ENV`` class.
    :param instance_relative_config: Resolve ``instance_config_filename``
        inside the instance folder.
    :param instance_config_filename: Optional override file, ignored when absent.

    The refresh token store follows ``SESSION_STORE_BACKEND``; the expiry
    reaper thread only starts when ``REAPER_ENABLED`` is true.
    """
    app = Flask(__name__, instance_relative_config=instance_relative_config)
    _load_config(
        app, config, instance_config_filename if instance_relative_config else None
    )
    configure_logging(
        app.config.get("LOG_LEVEL", "INFO"), audit_level=app.config.get("AUDIT_LOG_LEVEL")
    )

    for init in _init_steps():
        init(app)

    return app
