from __future__ import annotations

import pytest
import requests

from purview_export import auth as auth_module
from purview_export import enrichment as enrichment_module
from purview_export.auth import AuthManager
from purview_export.config import Settings
from purview_export.enrichment import GraphLabelEnricher
from purview_export.errors import ConfigError, EnrichmentError


class FakeApp:
    def __init__(self, client_id, client_credential=None, authority=None, token_cache=None):
        self.client_id = client_id
        self.authority = authority
        self.result = {"access_token": "token-123"}

    def acquire_token_silent(self, scopes, account=None):
        return None

    def acquire_token_for_client(self, scopes):
        return self.result


class FakeResponse:
    def __init__(self, status_code=200, payload=None, reason="OK", text=""):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def settings():
    return Settings(client_id="app", client_secret="secret", tenant_id="tenant")


@pytest.fixture
def auth(settings, monkeypatch, tmp_path):
    monkeypatch.setattr(auth_module.msal, "ConfidentialClientApplication", FakeApp)
    return AuthManager(settings, cache_path=str(tmp_path / "cache.bin"))


def test_auth_manager_returns_token(auth):
    assert auth.app.authority == "https://login.microsoftonline.com/tenant"
    assert auth.get_token() == "token-123"


def test_auth_manager_failure_raises(auth):
    auth.app.result = {"error": "invalid_client", "error_description": "bad secret"}
    with pytest.raises(EnrichmentError, match="bad secret"):
        auth.get_token()


def test_auth_manager_requires_secret():
    with pytest.raises(ConfigError):
        AuthManager(Settings(client_id="app"))


def test_fetch_labels_keys_by_id(settings, auth, monkeypatch):
    seen = {}

    def fake_get(url, headers=None, timeout=None):
        seen["url"] = url
        seen["auth"] = headers["Authorization"]
        return FakeResponse(payload={"value": [{"id": "2", "color": "#FF0000"}, {"name": "no id"}]})

    monkeypatch.setattr(enrichment_module.requests, "get", fake_get)
    labels = GraphLabelEnricher(settings, auth).fetch_labels()
    assert labels == {"2": {"id": "2", "color": "#FF0000"}}
    assert seen["url"] == "https://graph.microsoft.com/beta/security/informationProtection/sensitivityLabels"
    assert seen["auth"] == "Bearer token-123"


@pytest.mark.parametrize("status", [401, 403, 500])
def test_fetch_labels_http_errors(settings, auth, monkeypatch, status):
    monkeypatch.setattr(enrichment_module.requests, "get",
                        lambda url, headers=None, timeout=None: FakeResponse(status, reason="nope"))
    with pytest.raises(EnrichmentError, match=str(status)):
        GraphLabelEnricher(settings, auth).fetch_labels()


def test_fetch_labels_network_error(settings, auth, monkeypatch):
    def boom(url, headers=None, timeout=None):
        raise requests.ConnectionError("dns failure")

    monkeypatch.setattr(enrichment_module.requests, "get", boom)
    with pytest.raises(EnrichmentError, match="dns failure"):
        GraphLabelEnricher(settings, auth).fetch_labels()


def test_enricher_without_secret_raises_config_error():
    with pytest.raises(ConfigError):
        GraphLabelEnricher(Settings(client_id="app")).fetch_labels()


def test_bad_authority_becomes_enrichment_error(monkeypatch):
    def bad_authority(*args, **kwargs):
        raise ValueError("Unable to get authority configuration for https://login.microsoftonline.com/typo")

    monkeypatch.setattr(auth_module.msal, "ConfidentialClientApplication", bad_authority)
    enricher = GraphLabelEnricher(Settings(client_id="a", client_secret="s", tenant_id="typo"))
    with pytest.raises(EnrichmentError, match="authority configuration"):
        enricher.fetch_labels()
