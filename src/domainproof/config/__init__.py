"""Configuration subsystem for domainproof.

Public API::

    from domainproof.config import get_config, DomainProofConfig

    # At startup (CLI only):
    DomainProofConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    interval = cfg.settings.scheduler.interval_seconds
"""

from domainproof.config.domainproof_config import (
    ConfigValidationError,
    DomainProofConfig,
    get_config,
)
from domainproof.config.settings import (
    AlertSettings,
    ChallengeSettings,
    DatabaseSettings,
    DnsTxtSettings,
    DomainProofSettings,
    HttpSettings,
    LoggingSettings,
    MetricsSettings,
    SchedulerSettings,
    ServerSettings,
    WebhookSettings,
    build_settings,
)

__all__ = [
    "AlertSettings",
    "ChallengeSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "DnsTxtSettings",
    "DomainProofConfig",
    "DomainProofSettings",
    "HttpSettings",
    "LoggingSettings",
    "MetricsSettings",
    "SchedulerSettings",
    "ServerSettings",
    "WebhookSettings",
    "build_settings",
    "get_config",
]
