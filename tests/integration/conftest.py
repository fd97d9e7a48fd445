"""App fixture for route tests: real services over in-memory collaborators."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from errors import register_error_handlers
from routes.auth_routes import router as auth_router
from routes.otp_routes import router as otp_router
from routes.token_routes import router as token_router
from routes.verification_routes import router as verification_router
from shared import background


@pytest.fixture
def api_app(otp_engine, signup_service, token_service, verification_cache, limiter):
    """
    Build a FastAPI app with the service fixtures injected via lifespan.
    No real network connections are made.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.rate_limiter = limiter
        app.state.otp_engine = otp_engine
        app.state.signup_service = signup_service
        app.state.token_service = token_service
        app.state.verification_cache = verification_cache
        yield
        await background.drain()

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(otp_router)
    app.include_router(auth_router)
    app.include_router(token_router)
    app.include_router(verification_router)
    return app


@pytest.fixture
def client(api_app):
    with TestClient(api_app) as c:
        yield c
