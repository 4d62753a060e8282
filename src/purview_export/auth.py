"""
Authentication module using Microsoft Identity (MSAL).
Acquires app-only Graph tokens for the optional label enrichment call.
"""
from __future__ import annotations

import json
import logging
import os
from typing import List, Optional

import msal

from .config import Settings
from .errors import ConfigError, EnrichmentError

logger = logging.getLogger(__name__)

GRAPH_DEFAULT_SCOPE = "https://graph.microsoft.com/.default"


class AuthManager:
    """Client credentials flow against Entra ID.

    The manager persists a MSAL SerializableTokenCache to `cache_path` so
    repeated runs within the token lifetime skip the token endpoint.
    """

    def __init__(self, settings: Settings, cache_path: str = "token_cache.bin"):
        if not settings.client_id:
            raise ConfigError("CLIENT_ID must be set via environment or config.json")
        if not settings.client_secret:
            raise ConfigError("CLIENT_SECRET must be set for app-only Graph access")

        self.settings = settings
        self.cache_path = cache_path
        self.token_cache = msal.SerializableTokenCache()
        self._load_cache()

        self.app = msal.ConfidentialClientApplication(
            settings.client_id,
            client_credential=settings.client_secret,
            authority=settings.resolved_authority,
            token_cache=self.token_cache,
        )
        self.access_token: Optional[str] = None

    def _load_cache(self) -> None:
        if not os.path.exists(self.cache_path):
            return
        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                data = f.read()
            if data:
                self.token_cache.deserialize(data)
        except (OSError, ValueError) as exc:
            # non-fatal; start with an empty cache
            logger.debug("Ignoring unreadable token cache %s: %s", self.cache_path, exc)

    def _save_cache(self) -> None:
        if not self.token_cache.has_state_changed:
            return
        try:
            with open(self.cache_path, "w", encoding="utf-8") as f:
                f.write(self.token_cache.serialize())
        except OSError as exc:
            logger.debug("Could not persist token cache %s: %s", self.cache_path, exc)

    def get_token(self, scopes: Optional[List[str]] = None) -> str:
        """Return an app-only access token, raising EnrichmentError on failure."""
        if scopes is None:
            scopes = [GRAPH_DEFAULT_SCOPE]

        result = self.app.acquire_token_silent(scopes, account=None)
        if not result or "access_token" not in result:
            result = self.app.acquire_token_for_client(scopes=scopes)

        if not result or "access_token" not in result:
            # Log the full MSAL result for diagnostics
            try:
                logger.error("acquire_token_for_client failed, MSAL result: %s", json.dumps(result, indent=2))
            except (TypeError, ValueError):
                logger.error("acquire_token_for_client failed, MSAL result: %s", result)
            detail = result.get("error_description") if result else "no result"
            raise EnrichmentError(f"Token acquisition failed: {detail}")

        self.access_token = result["access_token"]
        self._save_cache()
        return self.access_token
