"""Prompt registry.

Usage::

    prompt = get_prompt("recon", "extraction", "EXTRACTION_SYSTEM_PROMPT")

    # Point at a different template package (e.g. site-specific wording):
    configure(package="my_site.prompts")
"""

from __future__ import annotations

import logging

from records_recon.prompts.backends.file_backend import FilePromptBackend

logger = logging.getLogger(__name__)

_backend: FilePromptBackend | None = None


def configure(*, package: str = "records_recon.prompts.templates") -> None:
    """Initialize the registry. If never called, the first lookup uses the bundled templates."""
    global _backend
    _backend = FilePromptBackend(package=package)
    logger.debug("Prompt registry configured with package %s", package)


def get_prompt(domain: str, category: str, name: str) -> str:
    """Look up a prompt template by domain, category and name.

    Raises:
        KeyError: If the prompt is not found.
    """
    if _backend is None:
        configure()
    assert _backend is not None
    return _backend.get(domain, category, name)


def reset() -> None:
    """Reset the registry to unconfigured state (for testing)."""
    global _backend
    _backend = None
