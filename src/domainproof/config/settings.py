"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from domainproof.config import get_config

    db = get_config().settings.database
    print(db.host, db.port)
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server configuration (bind address, workers, timeouts)."""

    bind: str
    port: int
    workers: int
    worker_class: str
    timeout: int
    graceful_timeout: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=d.get("port", 8080),
        workers=d.get("workers", 2),
        worker_class=d.get("worker_class", "sync"),
        timeout=d.get("timeout", 30),
        graceful_timeout=d.get("graceful_timeout", 30),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings:
    d = data or {}
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d.get("database", "domainproof"),
        user=d.get("user", "domainproof"),
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 2),
        max_connections=d.get("max_connections", 10),
        connection_timeout=d.get("connection_timeout", 30.0),
        auto_setup=d.get("auto_setup", False),
    )


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DnsTxtSettings:
    """DNS_TXT record naming and resolver settings."""

    record_prefix: str
    value_prefix: str
    resolvers: tuple[str, ...]
    timeout_seconds: float


@dataclass(frozen=True)
class HttpSettings:
    """HTTP well-known path and fetch settings."""

    path_prefix: str
    port: int
    scheme: str
    max_response_bytes: int
    user_agent: str
    timeout_seconds: float


@dataclass(frozen=True)
class ChallengeSettings:
    """Enabled methods, attempt limits and retry backoff."""

    enabled: tuple[str, ...]
    max_attempts: int
    probe_timeout_seconds: float
    backoff_base_seconds: int
    backoff_factor: float
    backoff_max_seconds: int
    localhost_fast_path: bool
    dns_txt: DnsTxtSettings
    http: HttpSettings


# Outbound HTTP fetches are kept between one and ten seconds.
_HTTP_TIMEOUT_MIN = 1.0
_HTTP_TIMEOUT_MAX = 10.0


def _build_challenges(data: dict | None) -> ChallengeSettings:
    d = data or {}
    dns = d.get("dns_txt") or {}
    http = d.get("http") or {}
    http_timeout = float(http.get("timeout_seconds", 4.0))
    return ChallengeSettings(
        enabled=tuple(d.get("enabled", ["DNS_TXT", "HTTP"])),
        max_attempts=d.get("max_attempts", 5),
        probe_timeout_seconds=d.get("probe_timeout_seconds", 5.0),
        backoff_base_seconds=d.get("backoff_base_seconds", 30),
        backoff_factor=d.get("backoff_factor", 2.0),
        backoff_max_seconds=d.get("backoff_max_seconds", 3600),
        localhost_fast_path=d.get("localhost_fast_path", True),
        dns_txt=DnsTxtSettings(
            record_prefix=dns.get("record_prefix", "_domainproof-challenge"),
            value_prefix=dns.get("value_prefix", "domainproof-verification"),
            resolvers=tuple(dns.get("resolvers", [])),
            timeout_seconds=dns.get("timeout_seconds", 5.0),
        ),
        http=HttpSettings(
            path_prefix=http.get("path_prefix", "/.well-known/domainproof"),
            port=http.get("port", 80),
            scheme=http.get("scheme", "http"),
            max_response_bytes=http.get("max_response_bytes", 4096),
            user_agent=http.get("user_agent", "domainproof-verifier/1.0"),
            timeout_seconds=min(max(http_timeout, _HTTP_TIMEOUT_MIN), _HTTP_TIMEOUT_MAX),
        ),
    )


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchedulerSettings:
    enabled: bool
    interval_seconds: float
    batch_size: int
    concurrency: int


_INTERVAL_MIN = 1.0
_INTERVAL_MAX = 300.0


def _build_scheduler(data: dict | None) -> SchedulerSettings:
    d = data or {}
    interval = float(d.get("interval_seconds", 30))
    return SchedulerSettings(
        enabled=d.get("enabled", True),
        interval_seconds=min(max(interval, _INTERVAL_MIN), _INTERVAL_MAX),
        batch_size=d.get("batch_size", 25),
        concurrency=d.get("concurrency", 4),
    )


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WebhookSettings:
    """Inbound provider webhook settings."""

    secret: str | None
    dedupe_window_seconds: int


def _build_webhooks(data: dict | None) -> WebhookSettings:
    d = data or {}
    return WebhookSettings(
        secret=d.get("secret") or None,
        dedupe_window_seconds=d.get("dedupe_window_seconds", 300),
    )


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AlertSettings:
    """Outbound alert delivery settings."""

    enabled: bool
    webhook_url: str | None
    delivery_timeout_seconds: float
    max_workers: int
    headers: dict[str, str]


def _build_alerts(data: dict | None) -> AlertSettings:
    d = data or {}
    return AlertSettings(
        enabled=d.get("enabled", True),
        webhook_url=d.get("webhook_url") or None,
        delivery_timeout_seconds=d.get("delivery_timeout_seconds", 5.0),
        max_workers=d.get("max_workers", 2),
        headers=dict(d.get("headers") or {}),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
    )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricsSettings:
    enabled: bool
    path: str


def _build_metrics(data: dict | None) -> MetricsSettings:
    d = data or {}
    return MetricsSettings(
        enabled=d.get("enabled", False),
        path=d.get("path", "/metrics"),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DomainProofSettings:
    server: ServerSettings
    database: DatabaseSettings
    challenges: ChallengeSettings
    scheduler: SchedulerSettings
    webhooks: WebhookSettings
    alerts: AlertSettings
    logging: LoggingSettings
    metrics: MetricsSettings


def build_settings(data: dict) -> DomainProofSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`DomainProofConfig` initialisation after
    environment-variable resolution and schema validation.
    """
    return DomainProofSettings(
        server=_build_server(data.get("server")),
        database=_build_database(data.get("database")),
        challenges=_build_challenges(data.get("challenges")),
        scheduler=_build_scheduler(data.get("scheduler")),
        webhooks=_build_webhooks(data.get("webhooks")),
        alerts=_build_alerts(data.get("alerts")),
        logging=_build_logging(data.get("logging")),
        metrics=_build_metrics(data.get("metrics")),
    )
