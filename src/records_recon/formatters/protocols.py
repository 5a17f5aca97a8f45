"""Output formatter protocol shared by report exporters."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class IOutputFormatter(Protocol):
    """Renders a report (or any event payload) to bytes."""

    def format(self, report: BaseModel, **kwargs: Any) -> bytes:
        ...

    def format_to_file(self, report: BaseModel, path: Path, **kwargs: Any) -> Path:
        ...

    @property
    def content_type(self) -> str:
        ...


__all__ = ["IOutputFormatter"]
