"""Structuring: service-backed with local aggregation fallback."""

from __future__ import annotations

from records_recon.synthesis.aggregator import aggregate
from records_recon.synthesis.coordinator import StructuringCoordinator, StructuringOutcome

__all__ = ["StructuringCoordinator", "StructuringOutcome", "aggregate"]
