"""Optional Microsoft Graph enrichment for sensitivity labels.

Calls the beta `security/informationProtection/sensitivityLabels` endpoint
with an app-only token. The endpoint is preview; any failure is reported as
EnrichmentError and the run continues without enrichment.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .auth import AuthManager
from .config import Settings
from .errors import EnrichmentError

logger = logging.getLogger(__name__)

SENSITIVITY_LABELS_PATH = "/security/informationProtection/sensitivityLabels"


def call_endpoint(token: str, url: str) -> requests.Response:
    headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
    return requests.get(url, headers=headers, timeout=30)


class GraphLabelEnricher:
    """Fetch Graph sensitivity labels keyed by label id."""

    def __init__(self, settings: Settings, auth: Optional[AuthManager] = None):
        self.settings = settings
        self.auth = auth
        self.base_url = settings.graph_base_url.rstrip("/")

    def _token(self) -> str:
        if self.auth is None:
            self.settings.validate_for_enrichment()
            self.auth = AuthManager(self.settings)
        return self.auth.get_token()

    def fetch_labels(self) -> Dict[str, Dict[str, Any]]:
        url = self.base_url + SENSITIVITY_LABELS_PATH
        try:
            token = self._token()
        except (ValueError, requests.RequestException) as exc:
            # msal raises ValueError for an unreachable or unknown authority
            raise EnrichmentError(f"Token acquisition failed: {exc}") from exc
        try:
            resp = call_endpoint(token, url)
        except requests.RequestException as exc:
            raise EnrichmentError(f"GET {url} failed: {exc}") from exc

        if resp.status_code in (401, 403):
            raise EnrichmentError(
                f"GET {url} -> {resp.status_code} {resp.reason} (likely missing InformationProtectionPolicy.Read.All)"
            )
        if resp.status_code != 200:
            raise EnrichmentError(f"GET {url} -> {resp.status_code} {resp.reason}: {resp.text[:500]}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise EnrichmentError(f"GET {url} returned a non-JSON body") from exc

        labels: Dict[str, Dict[str, Any]] = {}
        for item in payload.get("value", []) if isinstance(payload, dict) else []:
            if isinstance(item, dict) and item.get("id"):
                labels[str(item["id"])] = item
        logger.info("Graph enrichment returned %d label(s)", len(labels))
        return labels
