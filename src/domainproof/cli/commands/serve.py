"""Serve subcommand: start the domainproof HTTP service."""

from __future__ import annotations

import logging

log = logging.getLogger(__name__)


def build_app(config):
    """Connect to the database and build the Flask app with its container."""
    from domainproof.app import create_app  # noqa: PLC0415
    from domainproof.db import init_database  # noqa: PLC0415

    return create_app(config=config, database=init_database(config.settings.database))


def run_serve(config, args) -> None:
    """Start gunicorn, or Flask's server with ``--dev``.

    Under gunicorn the app is built in each worker, so nothing touches
    the database or starts threads in the arbiter process.
    """
    server = config.settings.server
    if getattr(args, "dev", False):
        log.info("Starting development server (not for production)")
        build_app(config).run(host=server.bind, port=server.port, debug=True, use_reloader=False)
        return

    from domainproof.server.gunicorn_app import run_gunicorn  # noqa: PLC0415

    run_gunicorn(lambda: build_app(config), server)
