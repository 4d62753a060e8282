from .base import ReportWriter
from .data import CsvWriter, JsonWriter, write_metadata
from .docx_writer import DocxWriter
from .markdown import MarkdownWriter
from .pptx_writer import PptxWriter

__all__ = [
    "ReportWriter",
    "JsonWriter",
    "CsvWriter",
    "MarkdownWriter",
    "DocxWriter",
    "PptxWriter",
    "write_metadata",
]
