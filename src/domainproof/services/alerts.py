"""Alert emitter.

Persists an alert row, then makes a single delivery attempt through
the configured :class:`AlertSink` on a bounded worker pool.  The
outcome is recorded on the row.  Nothing here raises to the caller:
a failure to alert must never undo the state change that caused it.
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from domainproof.core.blobs import make_alert_payload
from domainproof.core.clock import SystemClock
from domainproof.models.alert import Alert

if TYPE_CHECKING:
    from domainproof.core.clock import Clock
    from domainproof.core.types import AlertEventType, AlertSeverity
    from domainproof.integrations.alert_sink import AlertSink
    from domainproof.models.challenge import Challenge
    from domainproof.repositories.alert import AlertRepository

log = logging.getLogger(__name__)


class AlertEmitter:
    """Records and delivers operational alerts.

    Parameters
    ----------
    alert_repo:
        Persistence for alert rows.
    sink:
        Delivery channel.
    enabled:
        When False alerts are recorded but no delivery is attempted.
    delivery_timeout_seconds:
        Upper bound on one delivery attempt.
    max_workers:
        Size of the delivery pool.

    """

    def __init__(
        self,
        alert_repo: AlertRepository,
        sink: AlertSink,
        *,
        enabled: bool = True,
        delivery_timeout_seconds: float = 5,
        max_workers: int = 2,
        clock: Clock | None = None,
        metrics=None,
    ) -> None:
        self._alerts = alert_repo
        self._sink = sink
        self._enabled = enabled
        self._timeout = delivery_timeout_seconds
        self._clock = clock or SystemClock()
        self._metrics = metrics
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="domainproof-alert",
        )

    def emit(
        self,
        challenge: Challenge,
        severity: AlertSeverity,
        event_type: AlertEventType,
        message: str,
        payload: dict[str, Any] | None = None,
    ) -> Alert:
        """Record an alert for *challenge* and attempt delivery once.

        *payload* defaults to a snapshot of the challenge.  Returns the
        alert as last known; an unsaved alert if persistence failed.
        """
        now = self._clock.now()
        alert = Alert(
            id=uuid.uuid4(),
            challenge_id=challenge.id,
            mapping_id=challenge.domain_mapping_id,
            severity=severity,
            event_type=event_type,
            message=message,
            payload=payload if payload is not None else make_alert_payload(challenge, message),
            created_at=now,
            updated_at=now,
        )

        try:
            alert = self._alerts.create(alert)
        except Exception:
            log.exception(
                "Failed to persist %s alert for challenge %s",
                event_type.value,
                challenge.id,
            )
            return alert

        log.info(
            "Alert %s [%s] for challenge %s: %s",
            event_type.value,
            severity.value,
            challenge.id,
            message,
            extra={"event": "alert", "alert_id": str(alert.id)},
        )

        if not self._enabled:
            return alert
        return self._deliver(alert)

    def _deliver(self, alert: Alert) -> Alert:
        status_code: int | None = None
        error: str | None = None
        try:
            result = self._executor.submit(self._sink.deliver, alert).result(timeout=self._timeout)
            status_code = result.status_code
            if not 200 <= status_code < 300:
                error = f"sink returned HTTP {status_code}"
        except FutureTimeoutError:
            error = f"delivery timed out after {self._timeout}s"
        except Exception as exc:  # noqa: BLE001
            error = f"delivery failed: {exc}"

        delivered = error is None
        if self._metrics:
            self._metrics.increment(
                "domainproof_alerts_total",
                labels={"severity": alert.severity.value, "delivered": str(delivered).lower()},
            )
        if not delivered:
            log.warning("Alert %s not delivered: %s", alert.id, error)

        try:
            recorded = self._alerts.record_delivery(
                alert.id,
                delivered=delivered,
                status_code=status_code,
                error=error,
            )
        except Exception:
            log.exception("Failed to record delivery outcome for alert %s", alert.id)
            recorded = None

        return recorded or replace(
            alert,
            delivered=delivered,
            delivery_status_code=status_code,
            delivery_error=error,
        )

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
