"""Challenge endpoints.

``POST /mappings/{id}/challenges`` issues a challenge (or returns the
active one), ``GET /mappings/{id}/challenges`` lists a mapping's
history, ``GET /challenges/{id}`` returns one challenge with its
publishing instructions and ``GET /challenges/metrics/slo`` reports
verification counters.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from domainproof.api.serializers import serialize_challenge
from domainproof.app.context import get_container
from domainproof.app.errors import Problem
from domainproof.core.errors import MALFORMED, ConflictError

challenges_bp = Blueprint("challenges", __name__)


def _json_body() -> dict:
    """Return the JSON object body, or raise a 422 problem."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise Problem(MALFORMED, "Request body must be a JSON object", 422)
    return payload


@challenges_bp.route("/mappings/<uuid:mapping_id>/challenges", methods=["POST"])
def issue_challenge(mapping_id):
    """Issue a challenge for a domain mapping.

    Body: ``{"method": "DNS_TXT"}`` with optional ``provider``,
    ``providerReferenceId`` and ``reuseExisting`` (default ``true``).
    Responds 201 for a new challenge, 200 when the active one is
    returned and 409 when ``reuseExisting`` is ``false`` and one exists.
    """
    payload = _json_body()
    method = payload.get("method")
    if not isinstance(method, str) or not method:
        raise Problem(MALFORMED, "Field 'method' is required", 422)
    reuse = payload.get("reuseExisting", True)
    if not isinstance(reuse, bool):
        raise Problem(MALFORMED, "Field 'reuseExisting' must be a boolean", 422)
    for field in ("provider", "providerReferenceId"):
        value = payload.get(field)
        if value is not None and (not isinstance(value, str) or not value):
            raise Problem(MALFORMED, f"Field '{field}' must be a non-empty string", 422)

    container = get_container()
    try:
        result = container.verification.issue(
            mapping_id,
            method,
            provider=payload.get("provider"),
            provider_reference_id=payload.get("providerReferenceId"),
            reuse_existing=reuse,
        )
    except ConflictError as exc:
        existing = serialize_challenge(
            exc.existing,
            container.verification.instructions_for(exc.existing),
        )
        raise Problem(exc.error_type, exc.detail, exc.status, extra={"existing": existing}) from exc

    body = serialize_challenge(result.challenge, result.instructions)
    response = jsonify(body)
    response.status_code = 201 if result.created else 200
    if result.created:
        response.headers["Location"] = f"/challenges/{result.challenge.id}"
    return response


@challenges_bp.route("/mappings/<uuid:mapping_id>/challenges", methods=["GET"])
def list_challenges(mapping_id):
    container = get_container()
    challenges = container.verification.list_challenges(mapping_id)
    return jsonify({"challenges": [serialize_challenge(c) for c in challenges]})


@challenges_bp.route("/challenges/<uuid:challenge_id>", methods=["GET"])
def get_challenge(challenge_id):
    service = get_container().verification
    challenge = service.get_challenge(challenge_id)
    instructions = None if challenge.is_terminal else service.instructions_for(challenge)
    return jsonify(serialize_challenge(challenge, instructions))


@challenges_bp.route("/challenges/metrics/slo", methods=["GET"])
def slo_metrics():
    """Counters for verification success and alert delivery."""
    return jsonify(get_container().verification.slo_metrics().to_dict())
