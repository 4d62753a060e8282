"""Label hierarchy resolution.

Parents are labels whose parent reference is absent or does not resolve to
another label; each parent's children are the labels naming it directly.
Both groupings are ordered by ascending priority with ties kept in input
order. Resolution never fails: a dangling reference puts the label among the
parents.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from .projection import LabelRecord

logger = logging.getLogger(__name__)


def priority_key(record) -> float:
    # Records without a priority sort after all prioritized ones
    return record.priority if record.priority is not None else float("inf")


@dataclass
class LabelHierarchy:
    parents: List[LabelRecord] = field(default_factory=list)
    children: Dict[str, List[LabelRecord]] = field(default_factory=dict)
    # labels whose parent reference did not resolve
    degraded: List[LabelRecord] = field(default_factory=list)
    # labels not reachable from any parent (parent reference cycles)
    unreachable: List[LabelRecord] = field(default_factory=list)

    def children_of(self, label: LabelRecord) -> List[LabelRecord]:
        return self.children.get(label.id, [])

    def walk(self):
        """Yield (depth, label) in display order, parents first."""
        seen: Set[int] = set()

        def _visit(label: LabelRecord, depth: int):
            if id(label) in seen:
                return
            seen.add(id(label))
            yield depth, label
            for child in self.children_of(label):
                yield from _visit(child, depth + 1)

        for parent in self.parents:
            yield from _visit(parent, 0)


def _resolves(label: LabelRecord, known_ids: Sequence[str]) -> bool:
    if not label.parent_id:
        return False
    return any(other == label.parent_id for other in known_ids if other != label.id)


def resolve_hierarchy(labels: Sequence[LabelRecord]) -> LabelHierarchy:
    """Group labels into ordered parents and per-parent children."""
    known_ids = [label.id for label in labels if label.id]
    hierarchy = LabelHierarchy()

    parents: List[LabelRecord] = []
    children: Dict[str, List[LabelRecord]] = {}
    for label in labels:
        if _resolves(label, known_ids):
            children.setdefault(label.parent_id, []).append(label)
            continue
        if label.parent_id:
            hierarchy.degraded.append(label)
            logger.debug("Label %r references unknown parent %r; treating it as top-level",
                         label.name, label.parent_id)
        parents.append(label)

    # sorted() is stable, so equal priorities keep input order
    hierarchy.parents = sorted(parents, key=priority_key)
    hierarchy.children = {pid: sorted(group, key=priority_key) for pid, group in children.items()}

    reachable = {id(label) for _, label in hierarchy.walk()}
    hierarchy.unreachable = [label for label in labels if id(label) not in reachable]

    if hierarchy.degraded:
        logger.warning("%d label(s) reference a parent that is not in the export; listed as top-level",
                       len(hierarchy.degraded))
    if hierarchy.unreachable:
        logger.warning("%d label(s) are part of a parent reference cycle: %s", len(hierarchy.unreachable),
                       ", ".join(label.name for label in hierarchy.unreachable))
    return hierarchy


def label_index(labels: Sequence[LabelRecord]) -> Dict[str, LabelRecord]:
    """Lookup by id and by name, for cross-referencing policies to labels."""
    index: Dict[str, LabelRecord] = {}
    for label in labels:
        for key in (label.id, label.name):
            if key and key not in index:
                index[key] = label
    return index


def find_label(index: Dict[str, LabelRecord], reference: Optional[str]) -> Optional[LabelRecord]:
    if not reference:
        return None
    return index.get(reference)
