"""Extraction fan-out and the run driver.

``ReconPipeline`` lives in ``records_recon.pipeline.driver``; it is not
re-exported here because the structuring layer imports ``pipeline.parsing``.
"""

from __future__ import annotations

from records_recon.pipeline.chunking import chunk_corpus
from records_recon.pipeline.orchestrator import ChunkOrchestrator

__all__ = ["ChunkOrchestrator", "chunk_corpus"]
