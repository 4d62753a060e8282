"""Normalized data handed to every report writer."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .fetch import RawCollections
from .hierarchy import LabelHierarchy, find_label, label_index, resolve_hierarchy
from .linking import PolicyRuleLinks, link_rules
from .projection import (
    AutoLabelPolicyRecord,
    AutoLabelRuleRecord,
    DlpPolicyRecord,
    DlpRuleRecord,
    LabelPolicyRecord,
    LabelRecord,
    project_auto_label_policy,
    project_auto_label_rule,
    project_dlp_policy,
    project_dlp_rule,
    project_label,
    project_label_policy,
    record_id,
)

logger = logging.getLogger(__name__)

# (output suffix, ExportData attribute, record type), in report order
ENTITIES: Tuple[Tuple[str, str, type], ...] = (
    ("Labels", "labels", LabelRecord),
    ("LabelPolicies", "label_policies", LabelPolicyRecord),
    ("AutoLabelPolicies", "auto_label_policies", AutoLabelPolicyRecord),
    ("AutoLabelRules", "auto_label_rules", AutoLabelRuleRecord),
    ("DlpPolicies", "dlp_policies", DlpPolicyRecord),
    ("DlpRules", "dlp_rules", DlpRuleRecord),
)


@dataclass
class ExportData:
    labels: List[LabelRecord] = field(default_factory=list)
    label_policies: List[LabelPolicyRecord] = field(default_factory=list)
    auto_label_policies: List[AutoLabelPolicyRecord] = field(default_factory=list)
    auto_label_rules: List[AutoLabelRuleRecord] = field(default_factory=list)
    dlp_policies: List[DlpPolicyRecord] = field(default_factory=list)
    dlp_rules: List[DlpRuleRecord] = field(default_factory=list)
    hierarchy: LabelHierarchy = field(default_factory=LabelHierarchy)
    dlp_links: PolicyRuleLinks = field(default_factory=PolicyRuleLinks)
    auto_label_links: PolicyRuleLinks = field(default_factory=PolicyRuleLinks)
    # records the projector could not handle: {"kind", "name", "error"}
    skipped_records: List[Dict[str, str]] = field(default_factory=list)
    _label_index: Optional[Dict[str, LabelRecord]] = field(default=None, repr=False)

    def label(self, reference: Optional[str]) -> Optional[LabelRecord]:
        """Find a label by id or name."""
        if self._label_index is None:
            self._label_index = label_index(self.labels)
        return find_label(self._label_index, reference)

    def counts(self) -> Dict[str, int]:
        return {attr: len(getattr(self, attr)) for _, attr, _ in ENTITIES}


def _project_each(kind: str, raws: List[Any], project: Callable[[Any], Any],
                  skipped: List[Dict[str, str]]) -> List[Any]:
    """Project every raw record of one kind, skipping (and reporting) ones that cannot be projected."""
    out: List[Any] = []
    for raw in raws:
        try:
            out.append(project(raw))
        except Exception as exc:
            # One malformed record must not cost the rest of the collection
            name = raw.get("Name") if isinstance(raw, dict) else None
            logger.warning("Skipping malformed %s record %r: %s", kind, name, exc)
            skipped.append({"kind": kind, "name": str(name or ""), "error": str(exc)})
    return out


def build_dataset(raw: RawCollections) -> ExportData:
    """Project raw collections and derive the hierarchy and policy/rule links."""
    skipped: List[Dict[str, str]] = []
    data = ExportData(
        labels=_project_each("label", raw.labels,
                             lambda r: project_label(r, raw.enrichment.get(record_id(r))), skipped),
        label_policies=_project_each("label policy", raw.label_policies, project_label_policy, skipped),
        auto_label_policies=_project_each("auto-labeling policy", raw.auto_label_policies,
                                          project_auto_label_policy, skipped),
        auto_label_rules=_project_each("auto-labeling rule", raw.auto_label_rules, project_auto_label_rule, skipped),
        dlp_policies=_project_each("DLP policy", raw.dlp_policies,
                                   lambda r: project_dlp_policy(r, raw.dlp_source), skipped),
        dlp_rules=_project_each("DLP rule", raw.dlp_rules, project_dlp_rule, skipped),
        skipped_records=skipped,
    )
    data.hierarchy = resolve_hierarchy(data.labels)
    data.dlp_links = link_rules(data.dlp_policies, data.dlp_rules, kind="DLP")
    data.auto_label_links = link_rules(data.auto_label_policies, data.auto_label_rules, kind="auto-labeling")
    logger.info("Projected %s", ", ".join(f"{n} {k}" for k, n in data.counts().items()))
    return data
