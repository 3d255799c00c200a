"""Error taxonomy for domainproof.

Every error a caller can observe derives from :class:`DomainProofError`,
which carries the HTTP status and problem-type URN it should be
rendered as.  The Flask layer turns these into RFC 7807 responses
(see :mod:`domainproof.app.errors`).

Probe failures (:class:`~domainproof.challenge.base.ProbeError`) are
deliberately *not* part of this hierarchy: they are recovered inside
the prober and never reach a caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from domainproof.models.challenge import Challenge

_P = "urn:domainproof:error:"

MALFORMED = _P + "malformed"
NOT_FOUND = _P + "notFound"
CONFLICT = _P + "conflict"
UNAUTHORIZED = _P + "unauthorized"
SERVER_INTERNAL = _P + "serverInternal"


class DomainProofError(Exception):
    """Base class for errors surfaced to API callers.

    Parameters
    ----------
    detail:
        Human-readable explanation of the problem.
    error_type:
        Problem-type URN; defaults to the subclass's :attr:`default_type`.
    extra:
        Additional members merged into the problem document.

    """

    status: int = 400
    default_type: str = MALFORMED

    def __init__(
        self,
        detail: str,
        *,
        error_type: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.detail = detail
        self.error_type = error_type or self.default_type
        self.extra = extra or {}
        super().__init__(detail)


class ValidationError(DomainProofError):
    """Malformed input: bad webhook payload, unknown status or method."""

    status = 422
    default_type = MALFORMED

    def __init__(self, detail: str, *, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        extra = {"errors": self.errors} if self.errors else None
        super().__init__(detail, extra=extra)


class NotFoundError(DomainProofError):
    """Unknown challenge, mapping or provider reference."""

    status = 404
    default_type = NOT_FOUND


class ConflictError(DomainProofError):
    """An active challenge already exists for the mapping and method.

    The existing challenge is available as :attr:`existing` so the
    caller can reuse its proof artifact instead of republishing one.
    """

    status = 409
    default_type = CONFLICT

    def __init__(self, detail: str, existing: Challenge) -> None:
        self.existing = existing
        super().__init__(detail)


class AuthenticationError(DomainProofError):
    """Webhook signature missing or invalid."""

    status = 401
    default_type = UNAUTHORIZED
