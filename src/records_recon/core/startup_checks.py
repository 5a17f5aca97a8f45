"""Startup validation: fail-fast on critical misconfigurations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from records_recon.core.config import AppSettings

log = logging.getLogger(__name__)

# Providers that run locally or behind a proxy and do not require an API key
_NO_KEY_PROVIDERS = frozenset({"ollama", "litellm"})


def validate_settings(settings: AppSettings) -> None:
    """Validate application settings at startup. Raises ValueError on fatal misconfig."""
    _check_api_key(settings)
    _check_caps(settings)
    _check_timeouts(settings)


def _check_api_key(settings: AppSettings) -> None:
    """Reject placeholder API keys for providers that need real ones."""
    if settings.llm.provider not in _NO_KEY_PROVIDERS:
        if settings.llm.api_key in ("no-key", ""):
            raise ValueError(
                f"RECON_LLM_API_KEY is required for provider '{settings.llm.provider}'. "
                f"Set it via environment variable or secrets manager."
            )


def _check_caps(settings: AppSettings) -> None:
    """The retry corpus must never be larger than the corpus it was cut from."""
    if settings.extraction.retry_char_cap > settings.filter.filtered_text_cap:
        raise ValueError(
            f"RECON_EXTRACTION_RETRY_CHAR_CAP ({settings.extraction.retry_char_cap}) exceeds "
            f"RECON_FILTER_FILTERED_TEXT_CAP ({settings.filter.filtered_text_cap})."
        )
    if settings.filter.max_paragraphs < 1 or settings.filter.filtered_text_cap < 1:
        raise ValueError("Filter caps must be positive.")


def _check_timeouts(settings: AppSettings) -> None:
    """Warn when the idle deadline can never fire before the overall one."""
    if settings.llm.idle_timeout >= settings.llm.overall_timeout:
        log.warning(
            "RECON_LLM_IDLE_TIMEOUT (%.0fs) >= RECON_LLM_OVERALL_TIMEOUT (%.0fs); "
            "idle detection is effectively disabled.",
            settings.llm.idle_timeout,
            settings.llm.overall_timeout,
        )
