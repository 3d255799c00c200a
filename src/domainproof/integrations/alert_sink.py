"""Outbound alert delivery channels."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping

    from domainproof.models.alert import Alert

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    status_code: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class AlertSink(Protocol):
    def deliver(self, alert: Alert) -> DeliveryResult:
        """Deliver *alert* once.  May raise on transport failure."""
        ...


def alert_document(alert: Alert) -> dict:
    """JSON body posted to alert webhooks."""
    return {
        "id": str(alert.id),
        "challenge_id": str(alert.challenge_id),
        "mapping_id": str(alert.mapping_id),
        "severity": alert.severity.value,
        "event_type": alert.event_type.value,
        "message": alert.message,
        "payload": alert.payload,
        "created_at": alert.created_at.isoformat(),
    }


class WebhookAlertSink:
    """POSTs the alert as JSON to a configured URL.

    HTTP error statuses are returned as a :class:`DeliveryResult`;
    connection failures raise.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._headers = {"Content-Type": "application/json", **(headers or {})}

    def deliver(self, alert: Alert) -> DeliveryResult:
        payload = json.dumps(alert_document(alert)).encode("utf-8")
        req = urllib.request.Request(  # noqa: S310
            self._url,
            data=payload,
            headers=self._headers,
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # noqa: S310
                return DeliveryResult(resp.status)
        except urllib.error.HTTPError as exc:
            return DeliveryResult(exc.code)


class LogAlertSink:
    """Writes the alert to the log; used when no webhook URL is set."""

    def deliver(self, alert: Alert) -> DeliveryResult:
        level = {"INFO": logging.INFO, "WARN": logging.WARNING}.get(
            alert.severity.value,
            logging.ERROR,
        )
        log.log(
            level,
            "Alert %s [%s] challenge=%s: %s",
            alert.event_type.value,
            alert.severity.value,
            alert.challenge_id,
            alert.message,
            extra={"event": "alert", "alert_id": str(alert.id)},
        )
        return DeliveryResult(204)
