"""Provider webhook endpoint.

``POST /webhooks/challenges`` applies a propagation status report from
a DNS or hosting provider.  When ``webhooks.secret`` is configured the
raw body must be signed with HMAC-SHA256 in the
``X-Domainproof-Signature`` header (``sha256=<hex>``).
"""

from __future__ import annotations

import json
import logging

from flask import Blueprint, request

from domainproof.app.context import get_container
from domainproof.app.errors import Problem
from domainproof.core.errors import MALFORMED
from domainproof.services.webhook import SIGNATURE_HEADER

log = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__)


@webhooks_bp.route("/webhooks/challenges", methods=["POST"])
def ingest_challenge_webhook():
    service = get_container().verification

    body = request.get_data(cache=True)
    service.verify_webhook_signature(body, request.headers.get(SIGNATURE_HEADER))

    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise Problem(MALFORMED, "Request body is not valid JSON", 422) from None

    result = service.ingest_webhook_event(payload)
    if not result.applied:
        log.info(
            "Webhook for challenge %s not applied (%s)",
            result.challenge.id,
            result.reason,
        )
    return "", 204
