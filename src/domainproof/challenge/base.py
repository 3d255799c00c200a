"""Abstract base class for challenge method handlers.

Each verification method (DNS TXT, HTTP) is a handler that knows how
to derive its proof target at issuance, describe it to the tenant, and
probe for it.  Built-in and custom handlers inherit from
:class:`ChallengeMethodHandler`.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from domainproof.core.types import ChallengeMethod
    from domainproof.models.challenge import Challenge

log = logging.getLogger(__name__)


class ProbeError(Exception):
    """Raised when a probe could not observe the proof target.

    Recovered inside the prober by rescheduling; never surfaced to an
    API caller.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient.  Non-retryable failures still
        consume an attempt; the flag is informational.

    """

    def __init__(self, detail: str, *, retryable: bool = True) -> None:  # noqa: FBT001, FBT002
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


@dataclass(frozen=True)
class ChallengeTarget:
    """Method-specific proof target derived at issuance."""

    expected_value: str
    txt_record_name: str | None = None
    http_path: str | None = None


@dataclass(frozen=True)
class ProbeResult:
    """What a probe saw.

    ``observed`` is recorded as proof on a match; ``detail`` explains
    a mismatch.
    """

    matched: bool
    target: str
    observed: Any = None
    detail: str | None = None


class ChallengeMethodHandler(abc.ABC):
    """Base class for all challenge method handlers.

    Subclasses must set :attr:`method` and implement
    :meth:`build_target`, :meth:`describe_instructions` and
    :meth:`probe`.

    Parameters
    ----------
    settings:
        Per-method settings (e.g. ``DnsTxtSettings``).

    """

    method: ClassVar[ChallengeMethod]

    def __init__(self, settings: Any = None) -> None:  # noqa: ANN401
        self.settings = settings

    @abc.abstractmethod
    def build_target(self, domain: str, token: str) -> ChallengeTarget:
        """Derive the record name or path and the expected value."""

    @abc.abstractmethod
    def describe_instructions(self, challenge: Challenge, domain: str) -> dict[str, Any]:
        """Return machine-readable publishing instructions."""

    @abc.abstractmethod
    def probe(self, challenge: Challenge, domain: str) -> ProbeResult:
        """Look for the proof target.

        Must raise :class:`ProbeError` when the collaborator fails, and
        return a :class:`ProbeResult` otherwise.
        """
