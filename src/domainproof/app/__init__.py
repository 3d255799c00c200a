"""Flask application package."""

from domainproof.app.factory import create_app

__all__ = ["create_app"]
