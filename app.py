"""
FastAPI application factory.
create_app() is the single entry point for building the app.

The lifespan builds the captcha stack once per process:
ConfigResolver → PolicyCache → HttpClient → CaptchaService.
A policy document that cannot be loaded, or that names an unknown provider,
aborts startup (CaptchaProviderError).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI

from config import AppSettings
from errors import register_error_handlers
from infrastructure.http_client import HttpClient
from routes.captcha_routes import router as captcha_router
from routes.health_routes import router as health_router
from services.captcha_service import CaptchaService
from services.config_resolver import ConfigResolver
from services.policy_store import PolicyCache
from shared.logging import setup_logging


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging, production=settings.is_production)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        resolver = ConfigResolver(settings.config_source)
        policy_cache = PolicyCache(resolver)
        http_client = HttpClient(timeout=settings.captcha.captcha_verify_timeout_seconds)

        app.state.settings = settings
        app.state.config_resolver = resolver
        app.state.policy_cache = policy_cache
        app.state.http_client = http_client
        app.state.captcha_service = await CaptchaService.create(
            policy_cache, resolver, http_client
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        await resolver.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(captcha_router)

    return app
