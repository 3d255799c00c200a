"""Tests for create_app and the dependency container."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from domainproof.app import create_app
from domainproof.config import DomainProofConfig


@pytest.fixture()
def config(minimal_config_data):
    return DomainProofConfig(data=minimal_config_data)


class TestCreateApp:
    def test_without_database_serves_only_health(self, config):
        app = create_app(config)
        client = app.test_client()
        assert client.get("/livez").status_code == 200
        assert client.get("/readyz").status_code == 503
        assert client.get("/challenges/metrics/slo").status_code == 404
        assert "container" not in app.extensions

    def test_falls_back_to_global_config(self, config):
        app = create_app()
        assert app.config["DOMAINPROOF_CONFIG"] is config

    def test_metrics_route_only_when_enabled(self, config):
        container = MagicMock()
        app = create_app(config, container=container, start_scheduler=False)
        assert app.test_client().get("/metrics").status_code == 404

    def test_scheduler_started_when_enabled(self, config):
        container = MagicMock()
        create_app(config, container=container)
        container.scheduler.start.assert_called_once()

    def test_scheduler_not_started_when_overridden(self, config):
        container = MagicMock()
        create_app(config, container=container, start_scheduler=False)
        container.scheduler.start.assert_not_called()


class TestContainer:
    def test_wires_services_from_settings(self, minimal_config_data):
        from domainproof.app.context import Container
        from domainproof.integrations import LogAlertSink, WebhookAlertSink

        data = dict(minimal_config_data)
        data["challenges"] = {"max_attempts": 7, "enabled": ["DNS_TXT"]}
        settings = DomainProofConfig(data=data).settings

        container = Container(MagicMock(), settings)
        try:
            assert isinstance(container.alert_sink, LogAlertSink)
            assert container.issuer._max_attempts == 7
            assert [m.value for m in container.method_registry.enabled_methods] == ["DNS_TXT"]
            assert container.verification is not None
        finally:
            container.shutdown()

        data["alerts"] = {"webhook_url": "https://alerts.example.com/hook"}
        settings = DomainProofConfig(data=data).settings
        container = Container(MagicMock(), settings)
        try:
            assert isinstance(container.alert_sink, WebhookAlertSink)
        finally:
            container.shutdown()

    def test_create_app_builds_container_from_database(self, config):
        with patch("domainproof.app.context.Container") as container_cls:
            app = create_app(config, database=MagicMock(), start_scheduler=False)
        container_cls.assert_called_once()
        assert app.extensions["container"] is container_cls.return_value
