"""Salience filtering: vocabulary tables, date/provider heuristics, gating and selection."""

from __future__ import annotations

from records_recon.filtering.salience import filter_text, text_density

__all__ = ["filter_text", "text_density"]
