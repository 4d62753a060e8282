"""Command-line entry point.

Usage:
  purview-export --output-dir out --tenant-name "Contoso" [--enrich] [--markdown] [--docx] [--pptx]

Connection settings come from config.json and environment variables (a .env
file is honoured). See config.py for the recognised keys.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .config import load_settings
from .context import ExportOptions, RunContext
from .enrichment import GraphLabelEnricher
from .errors import ComplianceConnectionError, ConfigError
from .exporter import run_export
from .logging_setup import configure_console_logging, configure_file_logging
from .session import compliance_session

logger = logging.getLogger("purview_export")

EXIT_OK = 0
EXIT_CONNECTION = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="purview-export",
        description="Export Purview sensitivity label and DLP configuration to JSON/CSV and optional reports",
    )
    parser.add_argument("--output-dir", required=True, help="Directory the export files are written to")
    parser.add_argument("--tenant-name", required=True, help="Tenant display name used in reports")
    parser.add_argument("--enrich", action="store_true", help="Add Microsoft Graph (beta) label details")
    parser.add_argument("--markdown", action="store_true", help="Write a Markdown report")
    parser.add_argument("--docx", action="store_true", help="Write a Word narrative report")
    parser.add_argument("--pptx", action="store_true", help="Write a PowerPoint summary deck")
    parser.add_argument("--config", default="config.json", help="Path to config.json (default: %(default)s)")
    parser.add_argument("--log-level", default=None, help="Console log level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--logs-dir", default=None, help="Directory for the rotating log file (default: ./logs)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    configure_console_logging(args.log_level)
    try:
        log_path = configure_file_logging(args.logs_dir, logger_names=["purview_export"])
    except OSError as exc:
        log_path = None
        logger.warning("File logging disabled: %s", exc)
    if log_path:
        logger.debug("Logging to %s", log_path)

    try:
        settings = load_settings(args.config)
        settings.validate_for_session()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG

    options = ExportOptions(enrich=args.enrich, markdown=args.markdown, docx=args.docx, pptx=args.pptx)
    context = RunContext(output_dir=args.output_dir, tenant_name=args.tenant_name, options=options)
    enricher = GraphLabelEnricher(settings) if options.enrich else None

    try:
        result = run_export(context, lambda: compliance_session(settings), enricher=enricher)
    except ComplianceConnectionError as exc:
        logger.error("Could not connect to Security & Compliance PowerShell: %s", exc)
        return EXIT_CONNECTION

    for path in result.files:
        print(path)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
