"""HTTP API layer.

Call :func:`register_blueprints` during application startup to wire
the challenge and webhook blueprints into the Flask app.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

log = logging.getLogger(__name__)


def register_blueprints(app: Flask) -> None:
    """Register the challenge and webhook blueprints."""
    from domainproof.api.challenges import challenges_bp  # noqa: PLC0415
    from domainproof.api.webhooks import webhooks_bp  # noqa: PLC0415

    app.register_blueprint(challenges_bp)
    app.register_blueprint(webhooks_bp)

    log.info("API blueprints registered")
