"""
HTTP shell for the storefront.

Run with ``uvicorn --factory smrt.api.main:create_app``. Settings are loaded
when the app is built, so a process missing DATABASE_URL or
NEXT_PUBLIC_BASE_URL stops before it serves anything.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smrt.config import Settings, load_settings
from smrt.db import session as db_session
from smrt.site import SiteMetadata

logger = logging.getLogger("smrt.api")

openapi_tags = [
    {"name": "Health", "description": "Service and dependency health checks."},
    {"name": "Site", "description": "Storefront page metadata."},
]


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: already validated settings; loaded from the environment when omitted.

    Raises:
        ConfigurationError: required environment values are missing.
    """
    settings = settings or load_settings()
    db_session.configure(settings)

    app = FastAPI(
        title="SMRT Storefront API",
        description="Storefront data layer for SMRT (catalog, orders, reviews).",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.base_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", tags=["Health"], summary="Service health check")
    def health_check():
        """Basic health check for the backend service (no external dependencies)."""
        return {"message": "Healthy"}

    @app.get("/health/db", tags=["Health"], summary="Database health check")
    def health_db_check():
        """
        Check database connectivity.

        Returns a JSON payload indicating whether the database is reachable.
        """
        ok = db_session.db_healthcheck()
        return {"database": "ok" if ok else "unreachable", "ok": ok}

    @app.get("/site", tags=["Site"], summary="Site metadata", response_model=SiteMetadata)
    def site_metadata():
        """Title template, description and base URL used by every page."""
        return SiteMetadata(base_url=settings.base_url)

    logger.info("Application created for %s", settings.base_url)
    return app
