"""
Configuration loading.
Reads config.json (optional) and lets environment variables override it.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/beta"

# config.json key -> environment variable
_KEYS: Dict[str, str] = {
    "client_id": "CLIENT_ID",
    "client_secret": "CLIENT_SECRET",
    "tenant_id": "TENANT_ID",
    "authority": "AUTHORITY",
    "organization": "ORGANIZATION",
    "cert_thumbprint": "CERT_THUMBPRINT",
    "cert_path": "CERT_PATH",
    "cert_password": "CERT_PASSWORD",
    "user_principal_name": "USER_PRINCIPAL_NAME",
    "pwsh_path": "PWSH_PATH",
    "graph_base_url": "GRAPH_BASE_URL",
}


@dataclass
class Settings:
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    tenant_id: Optional[str] = None
    authority: Optional[str] = None
    organization: Optional[str] = None
    cert_thumbprint: Optional[str] = None
    cert_path: Optional[str] = None
    cert_password: Optional[str] = None
    user_principal_name: Optional[str] = None
    pwsh_path: str = "pwsh"
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    extra: Dict[str, object] = field(default_factory=dict)

    @property
    def resolved_authority(self) -> str:
        # Prefer an explicit AUTHORITY, then one built from TENANT_ID
        if self.authority:
            return self.authority
        if self.tenant_id:
            return f"https://login.microsoftonline.com/{self.tenant_id}"
        return "https://login.microsoftonline.com/common"

    @property
    def uses_certificate(self) -> bool:
        return bool(self.cert_thumbprint or self.cert_path)

    def validate_for_session(self) -> None:
        """Check that Connect-IPPSSession can be called with these settings."""
        problems: List[str] = []
        if self.uses_certificate:
            if not self.client_id:
                problems.append("CLIENT_ID is required for certificate authentication")
            if not self.organization:
                problems.append("ORGANIZATION is required for certificate authentication")
        elif not self.user_principal_name:
            problems.append("set CERT_THUMBPRINT/CERT_PATH for app-only or USER_PRINCIPAL_NAME for interactive login")
        if problems:
            raise ConfigError("; ".join(problems))

    def validate_for_enrichment(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ConfigError("CLIENT_ID and CLIENT_SECRET are required for Graph enrichment")


def load_settings(config_path: Optional[str] = "config.json", *, use_dotenv: bool = True) -> Settings:
    """Build Settings from config.json plus environment overrides."""
    if use_dotenv:
        load_dotenv()

    config: Dict[str, object] = {}
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as fh:
                config = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Could not read {config_path}: {exc}") from exc
        if not isinstance(config, dict):
            raise ConfigError(f"{config_path} must contain a JSON object")

    values: Dict[str, object] = {}
    for key, env_name in _KEYS.items():
        value = os.getenv(env_name) or config.get(key)
        if value:
            values[key] = value

    extra = {k: v for k, v in config.items() if k not in _KEYS}
    return Settings(extra=extra, **values)
