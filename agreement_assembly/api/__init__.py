"""
FastAPI application factory and API package.

Run with:
    uvicorn agreement_assembly.api:app --reload --port 8000

Or via the CLI:
    python -m agreement_assembly --serve
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agreement_assembly.config import get_settings
from agreement_assembly.api.routes import agreement_router, exhibit_router, health_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Application factory — create and configure the FastAPI instance."""
    settings = get_settings()

    application = FastAPI(
        title="Agreement Assembly API",
        description="Renders agreement templates and appends the purchased exhibits",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS: allow the quoting frontend (adjust origins in production)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(health_router, tags=["Health"])
    application.include_router(exhibit_router, prefix="/api/exhibits", tags=["Exhibits"])
    application.include_router(agreement_router, prefix="/api/agreements", tags=["Agreements"])

    logger.info(f"Created {settings.app_name} API (mock_mode={settings.mock_mode})")
    return application


# Module-level instance for `uvicorn agreement_assembly.api:app`
app = create_app()
