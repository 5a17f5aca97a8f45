"""FastAPI application with lifespan management."""

from __future__ import annotations

import importlib.metadata
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from records_recon.api.routes import health, recon
from records_recon.core.config import APIConfig, AppSettings
from records_recon.core.startup_checks import validate_settings
from records_recon.hooks import setup_logging
from records_recon.prompts import configure as configure_prompts
from records_recon.providers import LLMClient


def _get_version() -> str:
    """Read package version from installed metadata, with dev fallback."""
    try:
        return importlib.metadata.version("records-recon")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0-dev"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup/shutdown lifecycle."""
    settings = AppSettings()
    validate_settings(settings)
    setup_logging(settings.observability)
    configure_prompts()

    app.state.settings = settings
    app.state.llm_client = LLMClient(settings.llm)
    yield


_api_config = APIConfig()

app = FastAPI(
    title=_api_config.title,
    description=_api_config.description,
    version=_get_version(),
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(recon.router, prefix="/api")
