"""Flask application factory for domainproof.

Usage::

    from domainproof.app import create_app
    from domainproof.config import get_config
    from domainproof.db import init_database

    db  = init_database(get_config().settings.database)
    app = create_app(config=get_config(), database=db)
"""

from __future__ import annotations

import atexit
import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify

from domainproof import __version__
from domainproof.app.errors import register_error_handlers
from domainproof.app.middleware import register_request_hooks

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue
    from pypgkit import Database

    from domainproof.app.context import Container
    from domainproof.config.domainproof_config import DomainProofConfig

log = logging.getLogger(__name__)

# Webhook bodies and issuance requests are small.
_MAX_CONTENT_LENGTH = 64 * 1024


def create_app(
    config: DomainProofConfig | None = None,
    database: Database | None = None,
    *,
    container: Container | None = None,
    start_scheduler: bool | None = None,
) -> Flask:
    """Create and configure the domainproof Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`DomainProofConfig`.  Falls back to
        :func:`get_config` when ``None``.
    database:
        Initialised :class:`Database`.  When provided (or when
        *container* is), the dependency container and API routes are
        wired up.  Without either the app only serves ``/livez``.
    container:
        Pre-built container, e.g. one wired with fake collaborators.
    start_scheduler:
        Overrides ``scheduler.enabled``.

    """
    if config is None:
        from domainproof.config import get_config  # noqa: PLC0415

        config = get_config()

    settings = config.settings

    app = Flask("domainproof")
    app.config["DOMAINPROOF_SETTINGS"] = settings
    app.config["DOMAINPROOF_CONFIG"] = config
    app.config["MAX_CONTENT_LENGTH"] = _MAX_CONTENT_LENGTH

    register_error_handlers(app)
    register_request_hooks(app)
    _register_health(app)

    if container is None and database is not None:
        from domainproof.app.context import Container  # noqa: PLC0415

        container = Container(database, settings)

    if container is None:
        log.warning("No database configured; API routes are disabled")
        return app

    app.extensions["container"] = container
    atexit.register(container.shutdown)

    from domainproof.api import register_blueprints  # noqa: PLC0415

    register_blueprints(app)

    if settings.metrics.enabled:
        from domainproof.api.metrics import metrics_bp  # noqa: PLC0415

        app.register_blueprint(metrics_bp, url_prefix=settings.metrics.path)
        log.info("Metrics endpoint registered at %s", settings.metrics.path)

    run_scheduler = settings.scheduler.enabled if start_scheduler is None else start_scheduler
    if run_scheduler:
        container.scheduler.start()

    log.info("domainproof %s application created", __version__)
    return app


def _register_health(app: Flask) -> None:
    """Register ``/livez`` and ``/readyz`` probes."""

    @app.route("/livez")
    def livez() -> ResponseReturnValue:
        return jsonify({"alive": True, "version": __version__}), 200

    @app.route("/readyz")
    def readyz() -> ResponseReturnValue:
        container = app.extensions.get("container")
        if container is None:
            return jsonify({"ready": False, "reason": "no database"}), 503
        try:
            container.db.fetch_value("SELECT 1")
        except Exception:  # noqa: BLE001
            return jsonify({"ready": False, "reason": "database unreachable"}), 503
        return jsonify(
            {"ready": True, "scheduler_running": container.scheduler.running},
        ), 200
