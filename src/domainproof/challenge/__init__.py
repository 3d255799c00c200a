"""Challenge method handlers (DNS TXT and HTTP)."""

from domainproof.challenge.base import (
    ChallengeMethodHandler,
    ChallengeTarget,
    ProbeError,
    ProbeResult,
)
from domainproof.challenge.registry import MethodRegistry

__all__ = [
    "ChallengeMethodHandler",
    "ChallengeTarget",
    "MethodRegistry",
    "ProbeError",
    "ProbeResult",
]
