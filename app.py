"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.cache.store import KeyValueStore, MemoryStore, RedisStore
from infrastructure.email.zeptomail import LoggingNotifier, ZeptoMailNotifier
from infrastructure.http_client import HttpClient
from repositories.user_repository import UserRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.otp_routes import router as otp_router
from routes.token_routes import router as token_router
from routes.verification_routes import router as verification_router
from services.otp_service import OTPEngine
from services.rate_limiter import RateLimiter
from services.revocation import RevocationList
from services.signup_service import SignupService
from services.token_service import TokenService
from services.verification_cache import VerificationCache
from shared import background
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri,
            serverSelectionTimeoutMS=settings.db.mongo_timeout_ms,
            timeoutMS=settings.db.mongo_timeout_ms,
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings

        users = UserRepository(app.state.db)
        await users.ensure_indexes()
        app.state.users = users

        # Redis is optional; without it every counter is per-process
        redis_client = await create_redis_client(settings.redis)
        app.state.redis = redis_client

        fallback = MemoryStore()
        swept = [fallback]
        store: KeyValueStore
        if redis_client is not None:
            store = RedisStore(redis_client)
        else:
            store = MemoryStore()
            swept.append(store)
        sweepers = [
            asyncio.create_task(
                s.run_sweeper(settings.redis.memory_sweep_interval_seconds),
                name="memory_store_sweeper",
            )
            for s in swept
        ]

        http_client = HttpClient(timeout=settings.email.email_timeout_seconds)
        app.state.http_client = http_client
        if settings.email.zepto_api_token:
            notifier = ZeptoMailNotifier(
                settings.email,
                http_client,
                app_url=settings.app_url,
                expiry_minutes={
                    "signup": settings.otp.otp_signup_ttl_minutes,
                    "reset": settings.otp.otp_reset_ttl_minutes,
                },
            )
        else:
            log.warning("email_not_configured", notifier="logging")
            notifier = LoggingNotifier(echo_codes=not settings.is_production)

        rate_limiter = RateLimiter(store, fallback=fallback)
        revocations = RevocationList(store, fallback=fallback)
        token_service = TokenService(settings.jwt, revocations, users)
        verification_cache = VerificationCache(
            store,
            users,
            age_ttl_hours=settings.otp.age_verified_ttl_hours,
            email_ttl_hours=settings.otp.email_verified_ttl_hours,
        )
        app.state.rate_limiter = rate_limiter
        app.state.token_service = token_service
        app.state.verification_cache = verification_cache
        app.state.otp_engine = OTPEngine(
            store,
            rate_limiter,
            users,
            verification_cache,
            token_service,
            notifier,
            settings=settings.otp,
        )
        app.state.signup_service = SignupService(
            users, verification_cache, token_service, rate_limiter
        )
        log.info(
            "app_started",
            env=settings.env,
            store="redis" if redis_client is not None else "memory",
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await background.drain()
        for task in sweepers:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await http_client.aclose()
        await mongo_client.close()
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
    app.include_router(otp_router)
    app.include_router(auth_router)
    app.include_router(token_router)
    app.include_router(verification_router)

    return app
