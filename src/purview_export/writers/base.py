"""Report writer interface.

A writer turns ExportData into one or more files. Writers that depend on an
optional document library declare it in `required_module`; the exporter asks
`is_available()` before calling `write()`.
"""
from __future__ import annotations

import importlib.util
from typing import List, Optional

from ..context import RunContext
from ..dataset import ExportData
from ..errors import WriterUnavailableError


class ReportWriter:
    name = "report"
    required_module: Optional[str] = None

    def is_available(self) -> bool:
        if not self.required_module:
            return True
        return importlib.util.find_spec(self.required_module) is not None

    def check_available(self) -> None:
        if not self.is_available():
            raise WriterUnavailableError(
                f"{self.name} writer needs the '{self.required_module}' module, which is not installed"
            )

    def write(self, data: ExportData, context: RunContext) -> List[str]:
        """Write the output files and return their paths."""
        raise NotImplementedError


def yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def priority_text(value: Optional[int]) -> str:
    return "" if value is None else str(value)
