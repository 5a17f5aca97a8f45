"""Completion service access."""

from __future__ import annotations

from records_recon.providers.client import LLMClient
from records_recon.providers.protocols import ICompletionClient

__all__ = ["ICompletionClient", "LLMClient"]
