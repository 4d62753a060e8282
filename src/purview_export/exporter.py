"""Export run: connect, fetch, project, resolve, write.

Only a failed session connection stops the run. Query failures become empty
collections in the fetch stage; a failing writer is logged and the remaining
writers still run.
"""
from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Callable, List, Optional

from .context import RunContext
from .dataset import ExportData, build_dataset
from .enrichment import GraphLabelEnricher
from .errors import WriterUnavailableError
from .fetch import fetch_all
from .session import ComplianceSession
from .writers import CsvWriter, DocxWriter, JsonWriter, MarkdownWriter, PptxWriter, ReportWriter, write_metadata

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], "AbstractContextManager[ComplianceSession]"]


@dataclass
class ExportResult:
    data: ExportData
    files: List[str]
    metadata_path: Optional[str]


def select_writers(context: RunContext) -> List[ReportWriter]:
    writers: List[ReportWriter] = [JsonWriter(), CsvWriter()]
    if context.options.markdown:
        writers.append(MarkdownWriter())
    if context.options.docx:
        writers.append(DocxWriter())
    if context.options.pptx:
        writers.append(PptxWriter())
    return writers


def run_writers(writers: List[ReportWriter], data: ExportData, context: RunContext) -> None:
    for writer in writers:
        if not writer.is_available():
            message = f"{writer.name} output skipped: '{writer.required_module}' is not installed"
            logger.warning(message)
            context.skipped_outputs[writer.name] = message
            continue
        try:
            paths = writer.write(data, context)
        except WriterUnavailableError as exc:
            logger.warning("%s output skipped: %s", writer.name, exc)
            context.skipped_outputs[writer.name] = str(exc)
            continue
        except Exception as exc:
            # One broken renderer must not cost the other outputs
            logger.error("%s output failed: %s", writer.name, exc, exc_info=True)
            context.skipped_outputs[writer.name] = f"failed: {exc}"
            continue
        for path in paths:
            context.record_output(path)


def run_export(context: RunContext, session_factory: SessionFactory,
               enricher: Optional[GraphLabelEnricher] = None,
               writers: Optional[List[ReportWriter]] = None) -> ExportResult:
    """Run one export. Raises ComplianceConnectionError if the session cannot be opened."""
    logger.info("Starting Purview configuration export for %s", context.tenant_name)
    context.ensure_output_dir()

    # The session is held only for the query phase
    with session_factory() as session:
        raw = fetch_all(session, context, enricher)

    data = build_dataset(raw)
    context.metadata["enriched_labels"] = sum(1 for label in data.labels if label.color or label.content_formats)

    run_writers(writers if writers is not None else select_writers(context), data, context)

    metadata_path: Optional[str] = None
    try:
        metadata_path = write_metadata(data, context)
        context.record_output(metadata_path)
    except OSError as exc:
        logger.error("Could not write run metadata: %s", exc)

    logger.info("Export finished: %d file(s) written to %s", len(context.written), context.output_dir)
    return ExportResult(data=data, files=list(context.written), metadata_path=metadata_path)
