"""Markdown report: a section per entity type with cross-reference links."""
from __future__ import annotations

import json
import logging
import re
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..context import RunContext
from ..dataset import ExportData
from ..projection import DlpRuleRecord, LabelRecord
from .base import ReportWriter, priority_text, yes_no

logger = logging.getLogger(__name__)


def md_cell(value: str) -> str:
    # Escape pipes and keep rows on one line
    v = (value or "").replace("\n", "<br>").strip()
    return v.replace("|", "\\|")


def md_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> List[str]:
    out = ["| " + " | ".join(md_cell(str(h)) for h in headers) + " |",
           "| " + " | ".join(["---"] * len(headers)) + " |"]
    for r in rows:
        out.append("| " + " | ".join(md_cell(str(c)) for c in r) + " |")
    return out


def anchor(kind: str, key: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (key or "").lower()).strip("-")
    return f"{kind}-{slug or 'unnamed'}"


def unique_anchors(kind: str, keys: Sequence[str]) -> List[str]:
    """One anchor per key, in order; colliding slugs get a -2, -3, ... suffix."""
    taken: Set[str] = set()
    out: List[str] = []
    for key in keys:
        base = target = anchor(kind, key)
        n = 1
        while target in taken:
            n += 1
            target = f"{base}-{n}"
        taken.add(target)
        out.append(target)
    return out


def policy_anchors(kind: str, policies: Sequence) -> Tuple[List[str], Dict[str, str]]:
    """Anchors for each policy plus a name lookup (first policy wins) for rules linking back."""
    targets = unique_anchors(kind, [p.name for p in policies])
    by_name: Dict[str, str] = {}
    for policy, target in zip(policies, targets):
        by_name.setdefault(policy.name, target)
    return targets, by_name


def link(text: str, target: str) -> str:
    return f"[{text}](#{target})"


def _json_block(title: str, payload: str) -> List[str]:
    if not payload:
        return []
    try:
        pretty = json.dumps(json.loads(payload), indent=2, ensure_ascii=False)
    except ValueError:
        pretty = payload
    return [f"**{title}**", "", "```json", pretty, "```", ""]


class MarkdownWriter(ReportWriter):
    name = "markdown"

    def write(self, data: ExportData, context: RunContext) -> List[str]:
        path = context.path_for("Report", "md")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write("\n".join(render_markdown(data, context)) + "\n")
        logger.info("Wrote Markdown report to %s", path)
        return [path]


def _label_link(label: Optional[LabelRecord], fallback: str = "") -> str:
    if label is None:
        return fallback
    return link(label.display_name or label.name, anchor("label", label.id or label.name))


def _rule_link(rule: DlpRuleRecord) -> str:
    return link(rule.name, anchor("dlp-rule", rule.id or rule.name))


def render_markdown(data: ExportData, context: RunContext) -> List[str]:
    lines: List[str] = [
        f"# Purview Configuration Report: {context.tenant_name}",
        "",
        f"Generated {context.generated_display}",
        "",
        "## Summary",
        "",
    ]
    counts = data.counts()
    lines += md_table(["Object", "Count"], [
        ["Sensitivity labels", counts["labels"]],
        ["Label policies", counts["label_policies"]],
        ["Auto-labeling policies", counts["auto_label_policies"]],
        ["Auto-labeling rules", counts["auto_label_rules"]],
        ["DLP policies", counts["dlp_policies"]],
        ["DLP rules", counts["dlp_rules"]],
    ])
    lines.append("")

    lines += _labels_section(data)
    lines += _label_policies_section(data)
    lines += _auto_label_section(data)
    lines += _dlp_section(data)
    return lines


def _labels_section(data: ExportData) -> List[str]:
    lines = ["## Sensitivity Labels", ""]
    if not data.labels:
        return lines + ["_No sensitivity labels were exported._", ""]

    rows = []
    for depth, label in data.hierarchy.walk():
        indent = "&nbsp;&nbsp;" * (depth * 2)
        rows.append([indent + _label_link(label), priority_text(label.priority), yes_no(label.enabled),
                     label.encryption_summary])
    lines += md_table(["Label", "Priority", "Enabled", "Encryption"], rows)
    lines.append("")

    for _, label in data.hierarchy.walk():
        lines += _label_detail(data, label)

    if data.hierarchy.unreachable:
        lines += ["### Labels with circular parent references", ""]
        for label in data.hierarchy.unreachable:
            lines += _label_detail(data, label)
    return lines


def _label_detail(data: ExportData, label: LabelRecord) -> List[str]:
    lines = [f'<a id="{anchor("label", label.id or label.name)}"></a>',
             f"### {label.display_name or label.name}", ""]
    parent = data.label(label.parent_id)
    details = [
        ["Name", label.name],
        ["Id", label.id],
        ["Priority", priority_text(label.priority)],
        ["Enabled", yes_no(label.enabled)],
        ["Parent", _label_link(parent, label.parent_id or "")],
        ["Encryption", label.encryption_summary],
        ["Tooltip", label.tooltip],
        ["Description", label.description],
    ]
    children = data.hierarchy.children_of(label)
    if children:
        details.append(["Sublabels", ", ".join(_label_link(c) for c in children)])
    if label.color:
        details.append(["Color", label.color])
    if label.content_formats:
        details.append(["Content formats", ", ".join(label.content_formats)])
    lines += md_table(["Property", "Value"], details)
    lines.append("")
    lines += _json_block("Content marking", label.content_marking)
    lines += _json_block("Encryption settings", label.encryption)
    lines += _json_block("Endpoint protection", label.endpoint_protection)
    lines += _json_block("Auto-labeling", label.auto_labeling)
    return lines


def _label_policies_section(data: ExportData) -> List[str]:
    lines = ["## Label Policies", ""]
    if not data.label_policies:
        return lines + ["_No label policies were exported._", ""]
    for policy in data.label_policies:
        published = [_label_link(data.label(ref), ref) for ref in policy.published_label_ids]
        lines += [f'<a id="{anchor("label-policy", policy.id or policy.name)}"></a>', f"### {policy.name}", ""]
        lines += md_table(["Property", "Value"], [
            ["Enabled", yes_no(policy.enabled)],
            ["Priority", priority_text(policy.priority)],
            ["Mode", policy.mode],
            ["Published labels", ", ".join(published) or "None"],
        ])
        lines.append("")
        lines += _json_block("Applies to", policy.applies_to)
    return lines


def _auto_label_section(data: ExportData) -> List[str]:
    lines = ["## Auto-Labeling Policies", ""]
    if not data.auto_label_policies:
        return lines + ["_No auto-labeling policies were exported._", ""]
    for policy in data.auto_label_policies:
        applied = _label_link(data.label(policy.applied_label), policy.applied_label)
        lines += [f"### {policy.name}", ""]
        lines += md_table(["Property", "Value"], [
            ["Mode", policy.mode],
            ["Enabled", yes_no(policy.enabled)],
            ["Applied label", applied or "None"],
            ["Priority", priority_text(policy.priority)],
        ])
        lines.append("")
        rules = data.auto_label_links.rules_for(policy.name)
        if rules:
            lines += md_table(["Rule", "Priority", "Enabled"],
                              [[r.name, priority_text(r.priority), yes_no(r.enabled)] for r in rules])
            lines.append("")
        lines += _json_block("Locations", policy.locations)
    return lines


def _dlp_section(data: ExportData) -> List[str]:
    lines = ["## DLP Policies", ""]
    if not data.dlp_policies:
        lines += ["_No DLP policies were exported._", ""]
    targets, by_name = policy_anchors("dlp-policy", data.dlp_policies)
    for policy, target in zip(data.dlp_policies, targets):
        rules = data.dlp_links.rules_for(policy.name)
        lines += [f'<a id="{target}"></a>', f"### {policy.name}", ""]
        lines += md_table(["Property", "Value"], [
            ["Enabled", yes_no(policy.enabled)],
            ["Mode", policy.mode],
            ["Workloads", ", ".join(policy.workloads)],
            ["Priority", priority_text(policy.priority)],
            ["Rules", ", ".join(_rule_link(r) for r in rules) or "None"],
        ])
        lines.append("")

    lines += ["## DLP Rules", ""]
    for policy_name in data.dlp_links.by_policy:
        for rule in data.dlp_links.rules_for(policy_name):
            lines += _dlp_rule_detail(rule, link(policy_name, by_name[policy_name]))

    if data.dlp_links.unresolved:
        lines += ["### Rules referencing unknown policies", ""]
        for rule in data.dlp_links.unresolved:
            lines += _dlp_rule_detail(rule, rule.policy_name)
    return lines


def _dlp_rule_detail(rule: DlpRuleRecord, policy_ref: str) -> List[str]:
    lines = [f'<a id="{anchor("dlp-rule", rule.id or rule.name)}"></a>', f"### {rule.name}", ""]
    lines += md_table(["Property", "Value"], [
        ["Policy", policy_ref],
        ["Enabled", yes_no(rule.enabled)],
        ["Priority", priority_text(rule.priority)],
        ["Mode", rule.mode],
    ])
    lines.append("")
    lines += _json_block("Conditions", rule.conditions)
    lines += _json_block("Exceptions", rule.exceptions)
    lines += _json_block("Actions", rule.actions)
    return lines
