"""Streaming LLM client routed through LiteLLM.

Every call enforces two deadlines:

- an overall deadline covering the whole request, and
- an idle deadline that restarts each time a delta arrives.

Exceeding either raises ``LLMTimeoutError``; any other failure raises
``LLMServiceError`` so callers can pick different fallbacks.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Callable, Optional

from records_recon.core.config import LLMConfig
from records_recon.exceptions import LLMClientError, LLMServiceError, LLMTimeoutError

log = logging.getLogger(__name__)

TokenCallback = Callable[[int, int], None]

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


class LLMClient:
    """Async streaming client using ``litellm.acompletion(stream=True)``."""

    def __init__(self, config: LLMConfig) -> None:
        self._config = config

    @property
    def config(self) -> LLMConfig:
        return self._config

    @staticmethod
    def _is_timeout(exc: Exception) -> bool:
        """Provider-side timeouts surface as litellm ``Timeout``; treat them like ours."""
        from litellm.exceptions import Timeout

        return isinstance(exc, (Timeout, asyncio.TimeoutError))

    def _request_kwargs(self, messages: list[dict[str, Any]], model: str, max_tokens: int) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self._config.temperature,
            "max_tokens": max_tokens,
            "stream": True,
            "timeout": self._config.overall_timeout,
        }
        if self._config.api_key and self._config.api_key != "no-key":
            kwargs["api_key"] = self._config.api_key
        if self._config.base_url:
            kwargs["api_base"] = self._config.base_url
        return kwargs

    async def stream_complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        model: str | None = None,
        label: str = "Completion",
        max_tokens: int | None = None,
        on_token: Optional[TokenCallback] = None,
    ) -> str:
        """Stream a completion and return the accumulated text.

        Args:
            prompt: User message content.
            system_prompt: Optional system message.
            model: LiteLLM model id; defaults to the extraction model.
            label: Human-readable call name used in errors and logs.
            max_tokens: Output token budget; defaults to config.
            on_token: Called as ``on_token(delta_count, max_tokens)`` every
                ``token_progress_every`` deltas.

        Raises:
            LLMTimeoutError: overall or idle deadline exceeded.
            LLMServiceError: any other failure.
        """
        effective_model = model or self._config.extract_model
        budget = max_tokens or self._config.max_tokens

        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = self._request_kwargs(messages, effective_model, budget)

        try:
            return await asyncio.wait_for(
                self._consume(kwargs, label, budget, on_token),
                timeout=self._config.overall_timeout,
            )
        except LLMClientError:
            raise
        except asyncio.TimeoutError as exc:
            raise LLMTimeoutError(label, self._config.overall_timeout, kind="overall") from exc
        except Exception as exc:
            if self._is_timeout(exc):
                raise LLMTimeoutError(label, self._config.overall_timeout, kind="overall") from exc
            log.warning("%s streaming failed: %s", label, exc)
            raise LLMServiceError(f"{label} failed: {exc}", label=label) from exc

    async def _consume(
        self,
        kwargs: dict[str, Any],
        label: str,
        budget: int,
        on_token: Optional[TokenCallback],
    ) -> str:
        from litellm import acompletion

        stream = await acompletion(**kwargs)
        iterator = stream.__aiter__()
        pieces: list[str] = []
        deltas = 0
        every = max(1, self._config.token_progress_every)

        while True:
            try:
                chunk = await asyncio.wait_for(iterator.__anext__(), timeout=self._config.idle_timeout)
            except StopAsyncIteration:
                break
            except asyncio.TimeoutError as exc:
                raise LLMTimeoutError(label, self._config.idle_timeout, kind="idle") from exc

            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            content = getattr(delta, "content", None) if delta is not None else None
            if not content:
                continue
            pieces.append(content)
            deltas += 1
            if on_token is not None and deltas % every == 0:
                on_token(deltas, budget)

        log.debug("%s streamed %d deltas from %s", label, deltas, kwargs["model"])
        return "".join(pieces)

    # ── JSON extraction (static) ─────────────────────────────────────

    @staticmethod
    def extract_json(content: str, *, expect: type | None = None) -> Any | None:
        """Parse JSON from an LLM response, tolerating fences, prose and common defects.

        With ``expect`` set to ``dict`` or ``list``, only a value of that type
        is accepted. Returns ``None`` when nothing parses.
        """

        def _accept(value: Any) -> bool:
            return value is not None and (expect is None or isinstance(value, expect))

        def _try_parse(s: str) -> Any | None:
            """Attempt JSON parse with bounded repairs."""
            s = s.strip()
            if not s:
                return None
            try:
                return json.loads(s)
            except json.JSONDecodeError:
                pass
            # Trailing commas, then raw control characters inside strings
            s = _TRAILING_COMMA.sub(r"\1", s)
            try:
                return json.loads(s)
            except json.JSONDecodeError:
                pass
            s = _CONTROL_CHARS.sub(" ", s)
            try:
                return json.loads(s)
            except json.JSONDecodeError:
                return None

        # Strategy 1: ```json ... ``` fences, then generic ``` fences
        for fence in ("```json", "```"):
            start = content.find(fence)
            if start == -1:
                continue
            inner = content[start + len(fence):]
            end = inner.find("```")
            if end != -1:
                result = _try_parse(inner[:end])
                if _accept(result):
                    return result

        # Strategy 2: full content as JSON
        result = _try_parse(content)
        if _accept(result):
            return result

        # Strategy 3: first balanced { ... } or [ ... ]
        if expect is dict:
            pairs = [("{", "}")]
        elif expect is list:
            pairs = [("[", "]")]
        else:
            pairs = sorted(
                [("{", "}"), ("[", "]")],
                key=lambda p: content.find(p[0]) if content.find(p[0]) != -1 else len(content),
            )
        for open_ch, close_ch in pairs:
            result = _balanced_scan(content, open_ch, close_ch, _try_parse)
            if _accept(result):
                return result

        log.warning(
            "Failed to parse JSON from LLM response",
            extra={"response_length": len(content), "response_preview": content[:200]},
        )
        return None


def _balanced_scan(
    content: str,
    open_ch: str,
    close_ch: str,
    parse: Callable[[str], Any | None],
) -> Any | None:
    """Parse the first balanced span opened by *open_ch*, honoring strings and escapes."""
    idx = content.find(open_ch)
    if idx == -1:
        return None
    depth = 0
    in_string = False
    escape = False
    for i in range(idx, len(content)):
        ch = content[i]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return parse(content[idx:i + 1])
    return None
