"""Core configuration and infrastructure helpers."""

from .config import (
    ADMIN_EMAILS,
    ALLOWED_CORS_ORIGINS,
    BASE_URL,
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
    ProviderConfig,
    load_provider_configs,
)
from .database import engine, get_session
from .log import configure_logging
from .time import isoformat, utcnow

__all__ = [
    "ADMIN_EMAILS",
    "ALLOWED_CORS_ORIGINS",
    "BASE_URL",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DB_RESET",
    "FRONTEND_ERROR_PATH",
    "FRONTEND_SUCCESS_PATH",
    "FRONTEND_URL",
    "HTTP_TIMEOUT",
    "JWT_AUDIENCE",
    "JWT_EXPIRES_IN",
    "JWT_ISSUER",
    "JWT_SECRET",
    "LOG_LEVEL",
    "OAUTH_STATE_TTL",
    "PROVIDER_CONFIGS",
    "ProviderConfig",
    "SECRET_KEY",
    "configure_logging",
    "engine",
    "get_session",
    "isoformat",
    "load_provider_configs",
    "utcnow",
]
