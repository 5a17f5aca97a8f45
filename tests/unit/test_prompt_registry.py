"""Tests for the prompt registry and bundled templates."""

from __future__ import annotations

import pytest

from records_recon.prompts import configure, get_prompt


class TestPromptRegistry:
    def test_bundled_extraction_prompts(self) -> None:
        system = get_prompt("recon", "extraction", "EXTRACTION_SYSTEM_PROMPT")
        assert "JSON array" in system
        user = get_prompt("recon", "extraction", "EXTRACTION_USER_PROMPT")
        assert "{corpus}" in user and "{file_names}" in user

    def test_bundled_structuring_prompt(self) -> None:
        assert get_prompt("recon", "structuring", "STRUCTURING_SYSTEM_PROMPT")

    def test_unknown_name_raises_key_error(self) -> None:
        with pytest.raises(KeyError):
            get_prompt("recon", "extraction", "NOPE")

    def test_unknown_module_raises_key_error(self) -> None:
        with pytest.raises(KeyError, match="Prompt module not found"):
            get_prompt("recon", "missing", "X")

    def test_configure_other_package(self) -> None:
        configure(package="records_recon.no_such_templates")
        with pytest.raises(KeyError):
            get_prompt("recon", "extraction", "EXTRACTION_SYSTEM_PROMPT")

    def test_module_attribute_access_delegates_to_registry(self) -> None:
        from records_recon.prompts.templates.recon import extraction

        assert extraction.EXTRACTION_SYSTEM_PROMPT == get_prompt(
            "recon", "extraction", "EXTRACTION_SYSTEM_PROMPT"
        )
