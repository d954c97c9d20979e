# src/sugvoyage/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance and attaches the proximity services.
Endpoints live in `sugvoyage.api.routes`; discovery logic lives in `sugvoyage.proximity`.
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from sugvoyage.catalog.store import CatalogProvider
from sugvoyage.config.settings import Settings, get_settings
from sugvoyage.core.logging import configure_logging
from sugvoyage.core.time import Clock, utc_now

from .routes import router
from .services import build_services


def create_app(
    settings: Settings | None = None,
    *,
    provider: CatalogProvider | None = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """Build an app instance; `provider`/`clock` are injectable for tests."""
    settings = settings or get_settings()
    app = FastAPI(title="SugVoyage Proximity API", version="0.1.0")
    app.state.services = build_services(settings, provider=provider, clock=clock)

    # CORS (dev-friendly): the web and mobile frontends run on other origins.
    # - SUGVOYAGE_CORS_ORIGINS="http://localhost:5173,http://127.0.0.1:8081"
    # - SUGVOYAGE_CORS_ALLOW_LOCAL=0 to disable the default localhost allowance
    cors_origins = [s.strip() for s in os.getenv("SUGVOYAGE_CORS_ORIGINS", "").split(",") if s.strip()]
    cors_allow_local = os.getenv("SUGVOYAGE_CORS_ALLOW_LOCAL", "1").strip().lower() in {"1", "true", "yes", "y"}
    cors_origin_regex = (
        r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if cors_allow_local and not cors_origins else ""
    )
    if cors_origins or cors_origin_regex:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_origin_regex=cors_origin_regex or None,
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(router)
    return app


configure_logging()

app = create_app()
