"""JSON export for reports and scan caches."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel


class JSONFormatter:
    """Renders a pydantic model as indented JSON bytes.

    ``exclude_none`` drops unset optional fields (``note``, undated timeline
    rows keep their explicit ``null`` only when requested).
    """

    def __init__(self, indent: int = 2) -> None:
        self.indent = indent

    def format(self, report: BaseModel, *, exclude_none: bool = False, **kwargs: Any) -> bytes:
        return report.model_dump_json(indent=self.indent, exclude_none=exclude_none).encode()

    def format_to_file(self, report: BaseModel, path: Path, **kwargs: Any) -> Path:
        """Write JSON to *path* and return it."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.format(report, **kwargs))
        return path

    @property
    def content_type(self) -> str:
        return "application/json"
