"""Completion client protocol: the contract the pipeline depends on."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class ICompletionClient(Protocol):
    """Streaming completion with overall and idle deadlines.

    Implementations raise ``LLMTimeoutError`` when either deadline passes
    and ``LLMServiceError`` for any other failure.
    """

    async def stream_complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        model: str | None = None,
        label: str = "Completion",
        max_tokens: int | None = None,
        on_token: Optional[Callable[[int, int], None]] = None,
    ) -> str:
        """Return the full streamed response text."""
        ...
