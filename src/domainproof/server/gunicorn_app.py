"""Programmatic gunicorn runner for domainproof.

The Flask app is built inside each worker, after the fork, by calling
the factory handed to :class:`DomainProofApplication`.  Every worker so
gets its own connection pool, scheduler thread and executors; none of
them survive a fork.

Usage::

    from domainproof.server.gunicorn_app import run_gunicorn

    run_gunicorn(lambda: create_app(config=cfg, database=init_database(...)), settings.server)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gunicorn.app.base import BaseApplication

if TYPE_CHECKING:
    from collections.abc import Callable

    from flask import Flask

    from domainproof.config.settings import ServerSettings

log = logging.getLogger(__name__)


class DomainProofApplication(BaseApplication):
    """gunicorn application that builds the Flask app per worker."""

    def __init__(self, app_factory: Callable[[], Flask], server: ServerSettings) -> None:
        self._factory = app_factory
        self._server = server
        self._app: Flask | None = None
        super().__init__()

    def load_config(self) -> None:
        s = self._server
        options = {
            "bind": f"{s.bind}:{s.port}",
            "workers": s.workers,
            "worker_class": s.worker_class,
            "timeout": s.timeout,
            "graceful_timeout": s.graceful_timeout,
            "preload_app": False,
            # The request hooks write the access log.
            "accesslog": None,
        }
        for key, value in options.items():
            self.cfg.set(key, value)

    def load(self) -> Flask:
        if self._app is None:
            self._app = self._factory()
        return self._app


def run_gunicorn(app_factory: Callable[[], Flask], settings: ServerSettings) -> None:
    """Run gunicorn with *settings*; blocks until the arbiter exits."""
    log.info(
        "Starting gunicorn on %s:%s with %d %s worker(s)",
        settings.bind,
        settings.port,
        settings.workers,
        settings.worker_class,
    )
    DomainProofApplication(app_factory, settings).run()
