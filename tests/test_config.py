from __future__ import annotations

import json

import pytest

from purview_export.config import Settings, load_settings
from purview_export.errors import ConfigError

ENV_KEYS = ("CLIENT_ID", "CLIENT_SECRET", "TENANT_ID", "AUTHORITY", "ORGANIZATION", "CERT_THUMBPRINT",
            "CERT_PATH", "CERT_PASSWORD", "USER_PRINCIPAL_NAME", "PWSH_PATH", "GRAPH_BASE_URL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_config_file_values(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"client_id": "from-file", "organization": "contoso.onmicrosoft.com",
                                "cert_thumbprint": "T", "sharepoint_library": "Docs"}))
    settings = load_settings(str(path), use_dotenv=False)
    assert settings.client_id == "from-file"
    assert settings.uses_certificate
    assert settings.extra == {"sharepoint_library": "Docs"}
    settings.validate_for_session()


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"client_id": "from-file"}))
    monkeypatch.setenv("CLIENT_ID", "from-env")
    assert load_settings(str(path), use_dotenv=False).client_id == "from-env"


def test_missing_config_file_is_fine(tmp_path):
    settings = load_settings(str(tmp_path / "absent.json"), use_dotenv=False)
    assert settings.pwsh_path == "pwsh"
    assert settings.graph_base_url == "https://graph.microsoft.com/beta"


def test_corrupt_config_file_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError):
        load_settings(str(path), use_dotenv=False)


def test_authority_resolution():
    assert Settings().resolved_authority == "https://login.microsoftonline.com/common"
    assert Settings(tenant_id="t1").resolved_authority == "https://login.microsoftonline.com/t1"
    assert Settings(tenant_id="t1", authority="https://x").resolved_authority == "https://x"


def test_session_validation():
    with pytest.raises(ConfigError, match="ORGANIZATION"):
        Settings(client_id="a", cert_thumbprint="t").validate_for_session()
    with pytest.raises(ConfigError):
        Settings().validate_for_session()
    Settings(user_principal_name="admin@contoso.com").validate_for_session()


def test_enrichment_validation():
    with pytest.raises(ConfigError):
        Settings(client_id="a").validate_for_enrichment()
    Settings(client_id="a", client_secret="s").validate_for_enrichment()
