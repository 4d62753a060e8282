"""Run context passed to every stage of an export."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

BASE_NAME_PREFIX = "PurviewConfig"


@dataclass
class ExportOptions:
    enrich: bool = False
    markdown: bool = False
    docx: bool = False
    pptx: bool = False

    def as_dict(self) -> Dict[str, bool]:
        return {"enrichment": self.enrich, "markdown": self.markdown, "docx": self.docx, "pptx": self.pptx}


@dataclass
class RunContext:
    output_dir: str
    tenant_name: str
    options: ExportOptions = field(default_factory=ExportOptions)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    written: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    failed_queries: List[str] = field(default_factory=list)
    skipped_outputs: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def base_name(self) -> str:
        return f"{BASE_NAME_PREFIX}_{self.generated_at.strftime('%Y%m%d_%H%M%S')}"

    @property
    def generated_display(self) -> str:
        return self.generated_at.strftime("%Y-%m-%d %H:%M:%S UTC")

    def path_for(self, suffix: str, extension: str) -> str:
        return os.path.join(self.output_dir, f"{self.base_name}_{suffix}.{extension}")

    def ensure_output_dir(self) -> None:
        os.makedirs(self.output_dir, exist_ok=True)

    def record_output(self, path: str) -> None:
        self.written.append(os.path.abspath(path))

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def relative(self, path: Optional[str]) -> str:
        return os.path.basename(path) if path else ""
