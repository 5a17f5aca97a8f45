"""Shared fixtures for records-recon tests."""

from __future__ import annotations

import pytest

from records_recon.core.config import AppSettings, LLMConfig
from records_recon.prompts import reset as reset_prompts
from tests.fakes.documents import CLINICAL_TEXT
from tests.fakes.fake_llm import FakeStreamingClient


@pytest.fixture(autouse=True)
def _reset_prompt_registry() -> None:  # type: ignore[misc]
    """Each test starts from the bundled prompt templates."""
    reset_prompts()
    yield  # type: ignore[misc]
    reset_prompts()


@pytest.fixture
def settings() -> AppSettings:
    """Default test settings (no real LLM, short deadlines)."""
    return AppSettings(llm=LLMConfig(api_key="test-key", overall_timeout=5.0, idle_timeout=2.0))


@pytest.fixture
def clinical_text() -> str:
    """Three-page synthetic record: dated, signed notes plus noise and a negation."""
    return CLINICAL_TEXT


@pytest.fixture
def fake_client() -> FakeStreamingClient:
    return FakeStreamingClient()
