"""Output formatters.

Usage::

    from records_recon.formatters import JSONFormatter

    JSONFormatter().format_to_file(report, Path("report.json"))
"""

from __future__ import annotations

from records_recon.formatters.json_formatter import JSONFormatter
from records_recon.formatters.protocols import IOutputFormatter

__all__ = ["IOutputFormatter", "JSONFormatter"]
