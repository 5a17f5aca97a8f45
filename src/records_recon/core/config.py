"""Nested pydantic-settings configuration for the application.

Each group reads its own ``RECON_<GROUP>_*`` env vars; ``AppSettings``
aggregates them::

    settings = AppSettings()
    settings.filter.filtered_text_cap   # RECON_FILTER_FILTERED_TEXT_CAP
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class LLMConfig(BaseSettings):
    """Completion service configuration.

    Env vars use ``RECON_LLM_`` prefix::

        export RECON_LLM_API_KEY=xai-...
        export RECON_LLM_EXTRACT_MODEL=xai/grok-4-1-fast-non-reasoning
    """

    model_config = {"env_prefix": "RECON_LLM_"}

    provider: Literal["xai", "openai", "anthropic", "ollama", "litellm"] = "xai"
    base_url: str = ""
    api_key: str = "no-key"
    extract_model: str = "xai/grok-4-1-fast-non-reasoning"
    structure_model: str = "xai/grok-4-1-fast-reasoning"
    fallback_model: str = "xai/grok-4-0709"
    temperature: float = 0.0
    max_tokens: int = 3000
    overall_timeout: float = Field(default=90.0, gt=0.0)
    idle_timeout: float = Field(default=45.0, gt=0.0)
    token_progress_every: int = 15


class FilterConfig(BaseSettings):
    """Salience filter caps and gating thresholds.

    Env vars use ``RECON_FILTER_`` prefix.
    """

    model_config = {"env_prefix": "RECON_FILTER_"}

    filtered_text_cap: int = 20_000
    max_paragraphs: int = 100
    section_guarantee_count: int = 6
    min_paragraph_length: int = 30
    min_keyword_matches_flag: int = 2
    negation_lookback: int = 80
    min_text_density: int = 50
    flag_excerpt_chars: int = 150


class ExtractionConfig(BaseSettings):
    """Chunked extraction configuration.

    Env vars use ``RECON_EXTRACTION_`` prefix.
    """

    model_config = {"env_prefix": "RECON_EXTRACTION_"}

    max_parallel_chunks: int = Field(default=4, ge=1)
    chars_per_chunk: int = Field(default=5_000, ge=1)
    retry_char_cap: int = 10_000
    max_file_bytes: int = 50 * 1024 * 1024


class ObservabilityConfig(BaseSettings):
    """Observability configuration.

    Env vars use ``RECON_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "RECON_OBSERVABILITY_"}

    service_name: str = "records-recon"
    log_level: str = "INFO"


class APIConfig(BaseSettings):
    """HTTP API configuration.

    Env vars use ``RECON_API_`` prefix.
    """

    model_config = {"env_prefix": "RECON_API_"}

    title: str = "Records Recon"
    description: str = "Organizes medical records into a citation-backed condition index"
    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Top-level application settings aggregating all sub-configs.

    Each sub-config reads its own ``RECON_<GROUP>_*`` env vars.
    """

    llm: LLMConfig = LLMConfig()
    filter: FilterConfig = FilterConfig()
    extraction: ExtractionConfig = ExtractionConfig()
    observability: ObservabilityConfig = ObservabilityConfig()
    api: APIConfig = APIConfig()
