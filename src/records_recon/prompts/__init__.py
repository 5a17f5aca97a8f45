"""Prompt management: registry and bundled templates."""

from __future__ import annotations

from records_recon.prompts.registry import configure, get_prompt, reset

__all__ = ["configure", "get_prompt", "reset"]
