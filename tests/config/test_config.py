"""Tests for DomainProofConfig loading, validation and typed settings."""

from __future__ import annotations

import json

import pytest
import yaml

from domainproof.config import (
    ConfigValidationError,
    DomainProofConfig,
    build_settings,
    get_config,
)


def _write(tmp_path, data, name="config.yaml"):
    path = tmp_path / name
    if name.endswith(".json"):
        path.write_text(json.dumps(data), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestLoading:
    def test_minimal_file(self, tmp_config_file):
        cfg = DomainProofConfig(config_file=tmp_config_file)
        assert cfg.settings.database.database == "domainproof_test"
        assert get_config() is cfg
        assert cfg.data["_source"] == str(tmp_config_file)
        assert "config.yaml" in repr(cfg)

    def test_json_file(self, tmp_path, minimal_config_data):
        cfg = DomainProofConfig(config_file=_write(tmp_path, minimal_config_data, "c.json"))
        assert cfg.settings.database.user == "testuser"

    def test_get_config_before_init(self):
        with pytest.raises(RuntimeError, match="not initialised"):
            get_config()

    def test_requires_file_or_data(self):
        with pytest.raises(ValueError):
            DomainProofConfig()

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="must be a mapping"):
            DomainProofConfig(config_file=path)

    def test_dotted_get(self, minimal_config_data):
        cfg = DomainProofConfig(data=minimal_config_data)
        assert cfg.get("database.user") == "testuser"
        assert cfg.get("alerts.webhook_url", "none") == "none"


class TestDefaults:
    def test_settings_defaults(self, minimal_config_data):
        s = build_settings(minimal_config_data)
        assert s.challenges.enabled == ("DNS_TXT", "HTTP")
        assert s.challenges.max_attempts == 5
        assert s.challenges.backoff_base_seconds == 30
        assert s.challenges.backoff_max_seconds == 3600
        assert s.challenges.dns_txt.record_prefix == "_domainproof-challenge"
        assert s.challenges.http.path_prefix == "/.well-known/domainproof"
        assert s.challenges.http.timeout_seconds == 4.0
        assert s.scheduler.interval_seconds == 30
        assert s.webhooks.secret is None
        assert s.webhooks.dedupe_window_seconds == 300
        assert s.alerts.enabled is True
        assert s.alerts.webhook_url is None
        assert s.metrics.enabled is False

    @pytest.mark.parametrize("given,expected", [(0.1, 1.0), (4, 4.0), (60, 10.0)])
    def test_http_timeout_clamped(self, minimal_config_data, given, expected):
        data = {**minimal_config_data, "challenges": {"http": {"timeout_seconds": given}}}
        assert build_settings(data).challenges.http.timeout_seconds == expected

    def test_scheduler_interval_clamped(self, minimal_config_data):
        data = {**minimal_config_data, "scheduler": {"interval_seconds": 9999}}
        assert build_settings(data).scheduler.interval_seconds == 300.0


class TestValidation:
    def test_missing_database(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            DomainProofConfig(data={})
        assert any("database" in e for e in exc_info.value.errors)

    def test_unknown_key(self, minimal_config_data):
        with pytest.raises(ConfigValidationError, match="Additional properties"):
            DomainProofConfig(data={**minimal_config_data, "bogus": 1})

    def test_backoff_base_above_cap(self, minimal_config_data):
        data = {
            **minimal_config_data,
            "challenges": {"backoff_base_seconds": 600, "backoff_max_seconds": 60},
        }
        with pytest.raises(ConfigValidationError, match="backoff_base_seconds"):
            DomainProofConfig(data=data)

    def test_unknown_method(self, minimal_config_data):
        data = {**minimal_config_data, "challenges": {"enabled": ["DNS_TXT", "EMAIL"]}}
        with pytest.raises(ConfigValidationError, match="unknown method 'EMAIL'"):
            DomainProofConfig(data=data)

    def test_external_method_path_checked(self, minimal_config_data):
        data = {**minimal_config_data, "challenges": {"enabled": ["ext:NoDots"]}}
        with pytest.raises(ConfigValidationError, match="ext:package.module.ClassName"):
            DomainProofConfig(data=data)
        data = {**minimal_config_data, "challenges": {"enabled": ["ext:pkg.mod.Handler"]}}
        assert DomainProofConfig(data=data).settings.challenges.enabled == ("ext:pkg.mod.Handler",)

    def test_empty_method_list(self, minimal_config_data):
        data = {**minimal_config_data, "challenges": {"enabled": []}}
        with pytest.raises(ConfigValidationError, match="at least one"):
            DomainProofConfig(data=data)

    def test_pool_bounds(self, minimal_config_data):
        data = {"database": {**minimal_config_data["database"], "min_connections": 5, "max_connections": 2}}
        with pytest.raises(ConfigValidationError, match="min_connections"):
            DomainProofConfig(data=data)

    def test_alerts_without_url_warns(self, minimal_config_data, caplog):
        DomainProofConfig(data=minimal_config_data)
        assert "alerts.webhook_url is not set" in caplog.text

    def test_all_errors_reported_together(self, minimal_config_data):
        data = {
            **minimal_config_data,
            "challenges": {
                "enabled": ["EMAIL"],
                "backoff_base_seconds": 600,
                "backoff_max_seconds": 60,
            },
        }
        with pytest.raises(ConfigValidationError) as exc_info:
            DomainProofConfig(data=data)
        assert len(exc_info.value.errors) == 2


class TestEnvironment:
    def test_substitution_and_coercion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DP_DB_PASSWORD", "hunter2")
        monkeypatch.delenv("DP_SECRET", raising=False)
        monkeypatch.setenv("DP_PORT", "9090")
        data = {
            "server": {"port": "${DP_PORT}"},
            "database": {
                "database": "d",
                "user": "u",
                "password": "${DP_DB_PASSWORD}",
            },
            "webhooks": {"secret": "${DP_SECRET:-fallback-secret}"},
        }
        cfg = DomainProofConfig(config_file=_write(tmp_path, data))
        assert cfg.settings.server.port == 9090
        assert cfg.settings.database.password == "hunter2"
        assert cfg.settings.webhooks.secret == "fallback-secret"

    def test_numeric_literal_string_is_not_coerced(self, minimal_config_data):
        data = {**minimal_config_data, "webhooks": {"secret": "007"}}
        assert DomainProofConfig(data=data).settings.webhooks.secret == "007"

    def test_missing_variable(self, minimal_config_data, monkeypatch):
        monkeypatch.delenv("DP_MISSING", raising=False)
        data = {**minimal_config_data, "alerts": {"webhook_url": "${DP_MISSING}"}}
        with pytest.raises(ConfigValidationError, match="DP_MISSING"):
            DomainProofConfig(data=data)
