"""FastAPI application factory and configuration."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel
from starlette.middleware.sessions import SessionMiddleware

from . import models  # noqa: F401 - ensure models are registered with SQLModel
from .api import register_exception_handlers, register_routes
from .core import (
    ALLOWED_CORS_ORIGINS,
    COOKIE_DOMAIN,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    DB_RESET,
    FRONTEND_ERROR_PATH,
    FRONTEND_SUCCESS_PATH,
    FRONTEND_URL,
    HTTP_TIMEOUT,
    JWT_AUDIENCE,
    JWT_EXPIRES_IN,
    JWT_ISSUER,
    JWT_SECRET,
    LOG_LEVEL,
    OAUTH_STATE_TTL,
    PROVIDER_CONFIGS,
    SECRET_KEY,
    configure_logging,
    engine,
)
from .services import OAuthFlow, OAuthProvider, SessionTokenService, build_providers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if DB_RESET:
        SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    logger.info("OAuth providers enabled: %s", ", ".join(sorted(app.state.flow.providers)) or "none")
    yield
    for provider in app.state.flow.providers.values():
        await provider.close()


def create_app(
    providers: Optional[Mapping[str, OAuthProvider]] = None,
    tokens: Optional[SessionTokenService] = None,
) -> FastAPI:
    configure_logging(LOG_LEVEL)

    if providers is None:
        providers = build_providers(PROVIDER_CONFIGS, timeout=HTTP_TIMEOUT)
    if tokens is None:
        tokens = SessionTokenService(
            JWT_SECRET, expires_in=JWT_EXPIRES_IN, issuer=JWT_ISSUER, audience=JWT_AUDIENCE
        )

    app = FastAPI(title="SmartClaims Auth API", version="1.0.0", lifespan=lifespan)
    app.state.tokens = tokens
    app.state.flow = OAuthFlow(
        providers,
        tokens,
        state_ttl=OAUTH_STATE_TTL,
        frontend_url=FRONTEND_URL,
        success_path=FRONTEND_SUCCESS_PATH,
        error_path=FRONTEND_ERROR_PATH,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=SECRET_KEY,
        session_cookie="sid",
        max_age=OAUTH_STATE_TTL,
        https_only=COOKIE_SECURE,
        same_site=COOKIE_SAMESITE,
        domain=COOKIE_DOMAIN,
    )

    register_exception_handlers(app)
    register_routes(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("smartclaims.app:app", host="127.0.0.1", port=3001, reload=True)
