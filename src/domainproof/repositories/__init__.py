"""PostgreSQL repositories built on :class:`pypgkit.BaseRepository`."""

from domainproof.repositories.alert import AlertRepository
from domainproof.repositories.challenge import ChallengeRepository

__all__ = [
    "AlertRepository",
    "ChallengeRepository",
]
