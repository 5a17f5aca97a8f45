"""Reconciliation of extracted items: canonical keys, dedup, categories."""

from __future__ import annotations

from records_recon.reconcile.canonical import (
    canonical_key,
    dedupe_timeline,
    deduplicate_items,
    map_to_category,
)

__all__ = ["canonical_key", "dedupe_timeline", "deduplicate_items", "map_to_category"]
