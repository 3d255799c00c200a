"""Logging subsystem for domainproof.

Public API::

    from domainproof.logging import challenge_context, configure_logging

    configure_logging(settings.logging)

    with challenge_context(challenge.id, challenge.domain_mapping_id):
        log.info("probing")
"""

from domainproof.logging.setup import (
    ContextFilter,
    StructuredFormatter,
    TextFormatter,
    challenge_context,
    configure_logging,
)

__all__ = [
    "ContextFilter",
    "StructuredFormatter",
    "TextFormatter",
    "challenge_context",
    "configure_logging",
]
