"""Tests for MethodRegistry handler loading."""

from __future__ import annotations

from dataclasses import replace

import pytest

from domainproof.challenge.base import ChallengeMethodHandler, ChallengeTarget, ProbeResult
from domainproof.challenge.dns_txt import DnsTxtHandler
from domainproof.challenge.http import HttpHandler
from domainproof.challenge.registry import KNOWN_METHODS, MethodRegistry
from domainproof.core.types import ChallengeMethod


class CustomHttpHandler(ChallengeMethodHandler):
    method = ChallengeMethod.HTTP

    def build_target(self, domain, token):
        return ChallengeTarget(expected_value=token, http_path=f"/custom/{token}")

    def describe_instructions(self, challenge, domain):
        return {"method": "HTTP", "custom": True}

    def probe(self, challenge, domain):
        return ProbeResult(matched=True, target=domain)


class NotAHandler:
    method = ChallengeMethod.HTTP


def _registry(settings, enabled, **probes):
    return MethodRegistry(replace(settings.challenges, enabled=tuple(enabled)), **probes)


def test_known_methods():
    assert KNOWN_METHODS == {"DNS_TXT", "HTTP"}


def test_loads_both_builtins_by_default(registry):
    assert set(registry.enabled_methods) == {ChallengeMethod.DNS_TXT, ChallengeMethod.HTTP}
    assert isinstance(registry.get_handler(ChallengeMethod.DNS_TXT), DnsTxtHandler)
    assert isinstance(registry.get_handler(ChallengeMethod.HTTP), HttpHandler)


def test_disabled_method_raises_key_error(settings):
    registry = _registry(settings, ["DNS_TXT"])
    assert registry.is_enabled(ChallengeMethod.DNS_TXT)
    assert not registry.is_enabled(ChallengeMethod.HTTP)
    with pytest.raises(KeyError):
        registry.get_handler(ChallengeMethod.HTTP)


def test_builtin_handlers_receive_probes(settings, dns_probe, http_probe):
    registry = _registry(settings, ["DNS_TXT", "HTTP"], dns_probe=dns_probe, http_probe=http_probe)
    assert registry.get_handler(ChallengeMethod.DNS_TXT)._probe is dns_probe
    assert registry.get_handler(ChallengeMethod.HTTP)._probe is http_probe


def test_external_handler_overrides_builtin(settings):
    registry = _registry(
        settings,
        ["HTTP", f"ext:{__name__}.CustomHttpHandler"],
    )
    assert isinstance(registry.get_handler(ChallengeMethod.HTTP), CustomHttpHandler)


def test_bad_external_handler_is_skipped(settings, caplog):
    registry = _registry(
        settings,
        ["DNS_TXT", f"ext:{__name__}.NotAHandler", "ext:no_such_module.Handler"],
    )
    assert registry.enabled_methods == [ChallengeMethod.DNS_TXT]
    assert "Failed to load challenge method" in caplog.text


def test_unknown_name_is_skipped(settings):
    registry = _registry(settings, ["DNS_TXT", "TLS_ALPN"])
    assert registry.enabled_methods == [ChallengeMethod.DNS_TXT]
