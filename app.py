"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.email.zeptomail import ZeptoMailSender
from infrastructure.http_client import HttpClient
from infrastructure.users.protocol import UserStore
from routes.health_routes import router as health_router
from routes.registration_routes import router as registration_router
from shared.logging import get_logger, setup_logging


def create_app(
    settings: Optional[AppSettings] = None,
    user_store: Optional[UserStore] = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application.

    *user_store* is the permanent user persistence. Without it the
    registration endpoints answer 503.
    """
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging, production=settings.is_production)
    log = get_logger(__name__)

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
        app.state.settings = settings

        # OTP operations answer 503 while Redis is missing
        redis_client = None
        if settings.redis.redis_uri:
            redis_client = await create_redis_client(settings.redis.redis_uri)
        else:
            log.warning("redis_not_configured")
        app.state.redis = redis_client

        http_client = HttpClient(timeout=settings.email.email_timeout_seconds)
        app.state.email_sender = ZeptoMailSender(
            settings=settings.email,
            http_client=http_client,
            app_url=settings.app_url,
        )

        if user_store is None:
            log.warning("user_store_not_configured")
        app.state.user_store = user_store

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(registration_router)

    return app
