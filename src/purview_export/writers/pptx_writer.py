"""PowerPoint summary: title, aggregate counts, label hierarchy, DLP policies."""
from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from ..context import RunContext
from ..dataset import ExportData
from .base import ReportWriter, priority_text, yes_no

logger = logging.getLogger(__name__)

# default template layouts
TITLE_LAYOUT = 0
BULLET_LAYOUT = 1
TITLE_ONLY_LAYOUT = 5

MAX_BULLETS_PER_SLIDE = 12


class PptxWriter(ReportWriter):
    name = "pptx"
    required_module = "pptx"

    def write(self, data: ExportData, context: RunContext) -> List[str]:
        self.check_available()
        deck = build_deck(data, context)
        path = context.path_for("Summary", "pptx")
        deck.save(path)
        logger.info("Wrote slide deck to %s", path)
        return [path]


def _chunks(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _bullet_slides(deck, title: str, bullets: Sequence[Tuple[int, str]]) -> None:
    """Bullet slides of (level, text), continued over as many slides as needed."""
    if not bullets:
        bullets = [(0, "None exported")]
    for page, chunk in enumerate(_chunks(list(bullets), MAX_BULLETS_PER_SLIDE)):
        slide = deck.slides.add_slide(deck.slide_layouts[BULLET_LAYOUT])
        slide.shapes.title.text = title if page == 0 else f"{title} (continued)"
        body = slide.placeholders[1].text_frame
        body.clear()
        for i, (level, text) in enumerate(chunk):
            paragraph = body.paragraphs[0] if i == 0 else body.add_paragraph()
            paragraph.text = text
            paragraph.level = level


def _table_slide(deck, title: str, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
    from pptx.util import Inches

    slide = deck.slides.add_slide(deck.slide_layouts[TITLE_ONLY_LAYOUT])
    slide.shapes.title.text = title
    shape = slide.shapes.add_table(len(rows) + 1, len(headers), Inches(0.5), Inches(1.5), Inches(9), Inches(0.4))
    table = shape.table
    for col, header in enumerate(headers):
        table.cell(0, col).text = header
    for r, row in enumerate(rows, start=1):
        for col, value in enumerate(row):
            table.cell(r, col).text = str(value)


def build_deck(data: ExportData, context: RunContext):
    from pptx import Presentation

    deck = Presentation()
    title = deck.slides.add_slide(deck.slide_layouts[TITLE_LAYOUT])
    title.shapes.title.text = "Purview Configuration Summary"
    title.placeholders[1].text = f"{context.tenant_name}\n{context.generated_display}"

    counts = data.counts()
    encrypted = sum(1 for label in data.labels if label.encryption_enabled)
    _table_slide(deck, "At a glance", ["Object", "Count"], [
        ["Sensitivity labels", counts["labels"]],
        ["  with encryption", encrypted],
        ["Label policies", counts["label_policies"]],
        ["Auto-labeling policies", counts["auto_label_policies"]],
        ["Auto-labeling rules", counts["auto_label_rules"]],
        ["DLP policies", counts["dlp_policies"]],
        ["DLP rules", counts["dlp_rules"]],
    ])

    bullets = [
        (min(depth, 4), f"{label.display_name or label.name} (priority {priority_text(label.priority) or 'n/a'}"
                        f"{', encrypted' if label.encryption_enabled else ''})")
        for depth, label in data.hierarchy.walk()
    ]
    bullets += [(0, f"{label.name} (circular parent reference)") for label in data.hierarchy.unreachable]
    _bullet_slides(deck, "Sensitivity labels", bullets)

    rows = [[p.name, p.mode, yes_no(p.enabled), len(data.dlp_links.rules_for(p.name))] for p in data.dlp_policies]
    for page, chunk in enumerate(_chunks(rows, MAX_BULLETS_PER_SLIDE)):
        _table_slide(deck, "DLP policies" if page == 0 else "DLP policies (continued)",
                     ["Policy", "Mode", "Enabled", "Rules"], chunk)
    bullets = []
    for policy in data.dlp_policies:
        bullets.append((0, policy.name))
        bullets += [(1, f"{rule.name} (priority {priority_text(rule.priority) or 'n/a'})")
                    for rule in data.dlp_links.rules_for(policy.name)]
    _bullet_slides(deck, "DLP rules by policy", bullets)
    return deck
