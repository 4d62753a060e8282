"""Query stage.

Every query is independent: a failure is logged as a warning and the
collection is treated as empty. DLP queries fall back to the legacy
Exchange cmdlets when the compliance cmdlets are not available.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .context import RunContext
from .enrichment import GraphLabelEnricher
from .errors import PurviewExportError, QueryError
from .session import ComplianceSession

logger = logging.getLogger(__name__)

Raw = List[Dict[str, Any]]

LABELS = ("Get-Label",)
LABEL_POLICIES = ("Get-LabelPolicy",)
AUTO_LABEL_POLICIES = ("Get-AutoSensitivityLabelPolicy",)
AUTO_LABEL_RULES = ("Get-AutoSensitivityLabelRule",)
DLP_POLICIES = ("Get-DlpCompliancePolicy", "Get-DlpPolicy")
DLP_RULES = ("Get-DlpComplianceRule", "Get-TransportRule | Where-Object { $_.DlpPolicy }")


@dataclass
class RawCollections:
    labels: Raw = field(default_factory=list)
    label_policies: Raw = field(default_factory=list)
    auto_label_policies: Raw = field(default_factory=list)
    auto_label_rules: Raw = field(default_factory=list)
    dlp_policies: Raw = field(default_factory=list)
    dlp_rules: Raw = field(default_factory=list)
    dlp_source: str = "compliance"
    enrichment: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def run_query(session: ComplianceSession, commands: Sequence[str], what: str,
              context: Optional[RunContext] = None) -> Tuple[Raw, Optional[str]]:
    """Run the first command that succeeds; returns (records, command used)."""
    for command in commands:
        try:
            records = session.query(command)
        except QueryError as exc:
            logger.warning("Could not fetch %s with %s: %s", what, command, exc.message)
            continue
        logger.info("Fetched %d %s", len(records), what)
        return records, command

    message = f"{what}: all queries failed; exporting an empty collection"
    logger.warning(message)
    if context is not None:
        context.failed_queries.append(what)
        context.warn(message)
    return [], None


def fetch_all(session: ComplianceSession, context: RunContext,
              enricher: Optional[GraphLabelEnricher] = None) -> RawCollections:
    raw = RawCollections()
    raw.labels, _ = run_query(session, LABELS, "sensitivity labels", context)
    raw.label_policies, _ = run_query(session, LABEL_POLICIES, "label policies", context)
    raw.auto_label_policies, _ = run_query(session, AUTO_LABEL_POLICIES, "auto-labeling policies", context)
    raw.auto_label_rules, _ = run_query(session, AUTO_LABEL_RULES, "auto-labeling rules", context)

    raw.dlp_policies, used = run_query(session, DLP_POLICIES, "DLP policies", context)
    if used and used != DLP_POLICIES[0]:
        raw.dlp_source = "legacy"
        raw.dlp_rules, _ = run_query(session, DLP_RULES[1:], "DLP rules", context)
    else:
        raw.dlp_rules, _ = run_query(session, DLP_RULES, "DLP rules", context)

    if context.options.enrich:
        raw.enrichment = fetch_enrichment(enricher, context)
    return raw


def fetch_enrichment(enricher: Optional[GraphLabelEnricher], context: RunContext) -> Dict[str, Dict[str, Any]]:
    if enricher is None:
        logger.warning("Enrichment requested but no Graph client is configured")
        context.warn("enrichment skipped: no Graph client configured")
        return {}
    try:
        return enricher.fetch_labels()
    except PurviewExportError as exc:
        logger.warning("Graph enrichment failed, continuing without it: %s", exc)
        context.failed_queries.append("graph enrichment")
        context.warn(f"enrichment failed: {exc}")
        return {}
