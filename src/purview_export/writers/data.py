"""Structured-data (JSON) and tabular (CSV) writers, one file per entity type."""
from __future__ import annotations

import csv
import json
import logging
from typing import Any, Dict, List

from ..context import RunContext
from ..dataset import ENTITIES, ExportData
from ..projection import record_fields, record_to_dict
from .base import ReportWriter

logger = logging.getLogger(__name__)

LIST_SEPARATOR = "; "


def _csv_value(value: Any) -> Any:
    if isinstance(value, list):
        return LIST_SEPARATOR.join(str(v) for v in value)
    if value is None:
        return ""
    return value


class JsonWriter(ReportWriter):
    name = "json"

    def write(self, data: ExportData, context: RunContext) -> List[str]:
        paths: List[str] = []
        for suffix, attr, _ in ENTITIES:
            path = context.path_for(suffix, "json")
            rows = [record_to_dict(r) for r in getattr(data, attr)]
            with open(path, "w", encoding="utf-8") as fh:
                json.dump(rows, fh, indent=2, ensure_ascii=False)
            logger.info("Wrote %d record(s) to %s", len(rows), path)
            paths.append(path)
        return paths


class CsvWriter(ReportWriter):
    name = "csv"

    def write(self, data: ExportData, context: RunContext) -> List[str]:
        paths: List[str] = []
        for suffix, attr, record_type in ENTITIES:
            path = context.path_for(suffix, "csv")
            headers = record_fields(record_type)
            records = getattr(data, attr)
            # utf-8-sig so spreadsheet tools detect the encoding
            with open(path, "w", encoding="utf-8-sig", newline="") as fh:
                writer = csv.DictWriter(fh, fieldnames=headers)
                writer.writeheader()
                for record in records:
                    row: Dict[str, Any] = record_to_dict(record)
                    writer.writerow({k: _csv_value(v) for k, v in row.items()})
            logger.info("Wrote %d row(s) to %s", len(records), path)
            paths.append(path)
        return paths


def write_metadata(data: ExportData, context: RunContext) -> str:
    """Write the run summary; called last so it lists every file produced."""
    path = context.path_for("Metadata", "json")
    metadata: Dict[str, Any] = {
        "tenant_name": context.tenant_name,
        "generated_at": context.generated_at.isoformat(timespec="seconds"),
        "base_name": context.base_name,
        "features": context.options.as_dict(),
        "counts": data.counts(),
        "dlp_source": data.dlp_policies[0].source if data.dlp_policies else None,
        "degraded_parent_references": len(data.hierarchy.degraded),
        "cyclic_parent_references": len(data.hierarchy.unreachable),
        "unresolved_rule_references": {
            "dlp": len(data.dlp_links.unresolved),
            "auto_labeling": len(data.auto_label_links.unresolved),
        },
        "skipped_records": list(data.skipped_records),
        "failed_queries": list(context.failed_queries),
        "skipped_outputs": dict(context.skipped_outputs),
        "warnings": list(context.warnings),
        "files": [context.relative(p) for p in context.written],
    }
    metadata.update(context.metadata)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(metadata, fh, indent=2, ensure_ascii=False)
    logger.info("Wrote run metadata to %s", path)
    return path
