"""Collaborator interfaces and their default adapters.

The core talks to the outside world only through these protocols:
:class:`MappingRegistry`, :class:`DnsProbe`, :class:`HttpProbe` and
:class:`AlertSink`.
"""

from domainproof.integrations.alert_sink import (
    AlertSink,
    DeliveryResult,
    LogAlertSink,
    WebhookAlertSink,
)
from domainproof.integrations.dns_probe import DnsProbe, DnsPythonProbe
from domainproof.integrations.http_probe import HttpProbe, HttpResponse, UrllibHttpProbe
from domainproof.integrations.mapping_registry import (
    DatabaseMappingRegistry,
    MappingRegistry,
)

__all__ = [
    "AlertSink",
    "DatabaseMappingRegistry",
    "DeliveryResult",
    "DnsProbe",
    "DnsPythonProbe",
    "HttpProbe",
    "HttpResponse",
    "LogAlertSink",
    "MappingRegistry",
    "UrllibHttpProbe",
    "WebhookAlertSink",
]
