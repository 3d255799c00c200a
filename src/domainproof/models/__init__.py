"""Entity dataclasses (frozen; mutated via :func:`dataclasses.replace`)."""

from domainproof.models.alert import Alert
from domainproof.models.challenge import Challenge
from domainproof.models.mapping import DomainMapping

__all__ = [
    "Alert",
    "Challenge",
    "DomainMapping",
]
