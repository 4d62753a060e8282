"""
Word narrative document.
Headings per entity type, bookmarks on every label and DLP policy, and
internal hyperlinks from policies to the labels and rules they reference.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from ..context import RunContext
from ..dataset import ExportData
from ..projection import LabelRecord
from .base import ReportWriter, priority_text, yes_no
from .markdown import anchor, policy_anchors

logger = logging.getLogger(__name__)


class DocxWriter(ReportWriter):
    name = "docx"
    required_module = "docx"

    def write(self, data: ExportData, context: RunContext) -> List[str]:
        self.check_available()
        document = build_document(data, context)
        path = context.path_for("Report", "docx")
        document.save(path)
        logger.info("Wrote Word report to %s", path)
        return [path]


class _Bookmarks:
    """Word bookmark names must be unique and at most 40 characters."""

    def __init__(self):
        self._next_id = 0
        self.names = {}

    def name_for(self, key: str) -> str:
        if key not in self.names:
            self.names[key] = f"bm{len(self.names)}_{key.replace('-', '_')}"[:40]
        return self.names[key]

    def next_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)


def _add_bookmark(paragraph, name: str, bookmark_id: str) -> None:
    from docx.oxml import OxmlElement
    from docx.oxml.ns import qn

    start = OxmlElement("w:bookmarkStart")
    start.set(qn("w:id"), bookmark_id)
    start.set(qn("w:name"), name)
    end = OxmlElement("w:bookmarkEnd")
    end.set(qn("w:id"), bookmark_id)
    # w:pPr must stay the first child of the paragraph
    props = paragraph._p.pPr
    if props is not None:
        props.addnext(start)
    else:
        paragraph._p.insert(0, start)
    paragraph._p.append(end)


def _add_internal_link(paragraph, text: str, bookmark: str) -> None:
    from docx.oxml import OxmlElement
    from docx.oxml.ns import qn

    hyperlink = OxmlElement("w:hyperlink")
    hyperlink.set(qn("w:anchor"), bookmark)
    run = OxmlElement("w:r")
    props = OxmlElement("w:rPr")
    style = OxmlElement("w:rStyle")
    style.set(qn("w:val"), "Hyperlink")
    props.append(style)
    underline = OxmlElement("w:u")
    underline.set(qn("w:val"), "single")
    props.append(underline)
    run.append(props)
    text_el = OxmlElement("w:t")
    text_el.text = text
    text_el.set(qn("xml:space"), "preserve")
    run.append(text_el)
    hyperlink.append(run)
    paragraph._p.append(hyperlink)


def _heading(document, bookmarks: _Bookmarks, text: str, level: int, key: Optional[str] = None):
    paragraph = document.add_heading(text, level=level)
    if key:
        _add_bookmark(paragraph, bookmarks.name_for(key), bookmarks.next_id())
    return paragraph


def _linked_list(paragraph, bookmarks: _Bookmarks, items) -> None:
    """Append "a, b, c" where each item is (text, key-or-None)."""
    for i, (text, key) in enumerate(items):
        if i:
            paragraph.add_run(", ")
        if key:
            _add_internal_link(paragraph, text, bookmarks.name_for(key))
        else:
            paragraph.add_run(text)


def _property_table(document, rows) -> None:
    table = document.add_table(rows=0, cols=2)
    table.style = "Table Grid"
    for label, value in rows:
        cells = table.add_row().cells
        cells[0].text = label
        cells[1].text = value


def _label_key(label: LabelRecord) -> str:
    return anchor("label", label.id or label.name)


def build_document(data: ExportData, context: RunContext):
    from docx import Document

    document = Document()
    bookmarks = _Bookmarks()
    # keys for every label are reserved up front so forward links resolve
    for label in data.labels:
        bookmarks.name_for(_label_key(label))

    document.add_heading(f"Purview Configuration Report: {context.tenant_name}", level=0)
    document.add_paragraph(f"Generated {context.generated_display}.")
    counts = data.counts()
    document.add_paragraph(
        f"This tenant defines {counts['labels']} sensitivity label(s) published through "
        f"{counts['label_policies']} label policy(ies), {counts['auto_label_policies']} auto-labeling "
        f"policy(ies) with {counts['auto_label_rules']} rule(s), and {counts['dlp_policies']} DLP "
        f"policy(ies) with {counts['dlp_rules']} rule(s)."
    )

    _heading(document, bookmarks, "Sensitivity Labels", 1)
    if not data.labels:
        document.add_paragraph("No sensitivity labels were exported.")
    for depth, label in data.hierarchy.walk():
        _label_section(document, bookmarks, data, label, level=min(2 + depth, 9))
    if data.hierarchy.unreachable:
        _heading(document, bookmarks, "Labels with circular parent references", 2)
        for label in data.hierarchy.unreachable:
            _label_section(document, bookmarks, data, label, level=3)

    _heading(document, bookmarks, "Label Policies", 1)
    if not data.label_policies:
        document.add_paragraph("No label policies were exported.")
    for policy in data.label_policies:
        _heading(document, bookmarks, policy.name, 2)
        p = document.add_paragraph(
            f"{'Enabled' if policy.enabled else 'Disabled'} policy (priority {priority_text(policy.priority) or 'n/a'})"
            " publishing: "
        )
        items = []
        for ref in policy.published_label_ids:
            label = data.label(ref)
            items.append((label.display_name or label.name, _label_key(label)) if label else (ref, None))
        _linked_list(p, bookmarks, items or [("no labels", None)])

    _heading(document, bookmarks, "Auto-Labeling Policies", 1)
    if not data.auto_label_policies:
        document.add_paragraph("No auto-labeling policies were exported.")
    for policy in data.auto_label_policies:
        _heading(document, bookmarks, policy.name, 2)
        p = document.add_paragraph(f"Mode {policy.mode or 'n/a'}; applies label ")
        label = data.label(policy.applied_label)
        _linked_list(p, bookmarks, [(label.display_name or label.name, _label_key(label)) if label
                                    else (policy.applied_label or "none", None)])
        for rule in data.auto_label_links.rules_for(policy.name):
            document.add_paragraph(f"{rule.name} (priority {priority_text(rule.priority) or 'n/a'}, "
                                   f"{'enabled' if rule.enabled else 'disabled'})", style="List Bullet")

    _heading(document, bookmarks, "Data Loss Prevention", 1)
    if not data.dlp_policies:
        document.add_paragraph("No DLP policies were exported.")
    targets, by_name = policy_anchors("dlp-policy", data.dlp_policies)
    for policy, target in zip(data.dlp_policies, targets):
        rules = data.dlp_links.rules_for(policy.name)
        _heading(document, bookmarks, policy.name, 2, key=target)
        document.add_paragraph(
            f"{'Enabled' if policy.enabled else 'Disabled'} policy in {policy.mode or 'unspecified'} mode covering "
            f"{', '.join(policy.workloads) or 'no workloads'}; {len(rules)} rule(s)."
        )
        for rule in rules:
            _heading(document, bookmarks, rule.name, 3)
            p = document.add_paragraph("Policy: ")
            _linked_list(p, bookmarks, [(policy.name, by_name[policy.name])])
            _property_table(document, [
                ("Enabled", yes_no(rule.enabled)),
                ("Priority", priority_text(rule.priority)),
                ("Conditions", rule.conditions or "None"),
                ("Exceptions", rule.exceptions or "None"),
                ("Actions", rule.actions or "None"),
            ])

    if data.dlp_links.unresolved:
        _heading(document, bookmarks, "Rules referencing unknown policies", 2)
        for rule in data.dlp_links.unresolved:
            document.add_paragraph(f"{rule.name} -> {rule.policy_name}", style="List Bullet")
    return document


def _label_section(document, bookmarks: _Bookmarks, data: ExportData, label: LabelRecord, level: int) -> None:
    _heading(document, bookmarks, label.display_name or label.name, level, key=_label_key(label))
    if label.description:
        document.add_paragraph(label.description)
    parent = data.label(label.parent_id)
    if parent is not None:
        p = document.add_paragraph("Sublabel of ")
        _linked_list(p, bookmarks, [(parent.display_name or parent.name, _label_key(parent))])
    children = data.hierarchy.children_of(label)
    if children:
        p = document.add_paragraph("Sublabels: ")
        _linked_list(p, bookmarks, [(c.display_name or c.name, _label_key(c)) for c in children])
    _property_table(document, [
        ("Priority", priority_text(label.priority)),
        ("Enabled", yes_no(label.enabled)),
        ("Encryption", label.encryption_summary),
        ("Tooltip", label.tooltip),
        ("Content marking", label.content_marking or "None"),
    ])
