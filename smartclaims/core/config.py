"""Application settings and environment helpers."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from ..exceptions import ConfigurationError

load_dotenv(override=False)


def _require_env(name: str, env: Mapping[str, str] = os.environ) -> str:
    """Return a required environment variable or raise an error."""

    value = env.get(name)
    if not value:
        raise ConfigurationError(f"Missing required environment variable: {name}")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number") from exc


def _split_csv(raw: str | None) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(raw: str) -> int:
    """Convert ``"7d"``, ``"12h"``, ``"30m"`` or ``"3600"`` to seconds."""

    match = _DURATION_RE.match(raw or "")
    if not match:
        raise ConfigurationError(f"Invalid duration: {raw!r}")
    seconds = int(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise ConfigurationError(f"Duration must be positive: {raw!r}")
    return seconds


# OAuth provider configuration ----------------------------------------------
DEFAULT_SCOPES: Dict[str, Tuple[str, ...]] = {
    "google": ("openid", "email", "profile"),
    "facebook": ("email", "public_profile"),
    "github": ("read:user", "user:email"),
}


@dataclass(frozen=True)
class ProviderConfig:
    """Static OAuth client registration for one provider."""

    name: str
    client_id: str
    client_secret: str
    redirect_base_url: str
    scopes: Tuple[str, ...]

    @property
    def redirect_uri(self) -> str:
        # Must be identical in the authorize request and the code exchange.
        return f"{self.redirect_base_url.rstrip('/')}/auth/{self.name}/callback"


def _split_scopes(raw: str) -> Tuple[str, ...]:
    return tuple(item for item in re.split(r"[\s,]+", raw) if item)


def load_provider_configs(
    env: Mapping[str, str] = os.environ,
    base_url: Optional[str] = None,
) -> Dict[str, ProviderConfig]:
    """Build the enabled provider registrations from ``env``.

    A provider is enabled as soon as its client id or secret is set. An
    enabled provider missing either value is a fatal configuration error.
    """

    default_base = base_url or env.get("BASE_URL") or "http://localhost:3001"
    configs: Dict[str, ProviderConfig] = {}
    for name, default_scopes in DEFAULT_SCOPES.items():
        prefix = name.upper()
        client_id = (env.get(f"{prefix}_CLIENT_ID") or "").strip()
        client_secret = (env.get(f"{prefix}_CLIENT_SECRET") or "").strip()
        if not client_id and not client_secret:
            continue
        if not client_id or not client_secret:
            missing = f"{prefix}_CLIENT_ID" if not client_id else f"{prefix}_CLIENT_SECRET"
            raise ConfigurationError(
                f"Missing required environment variable: {missing}", provider=name
            )
        raw_scopes = env.get(f"{prefix}_SCOPES")
        configs[name] = ProviderConfig(
            name=name,
            client_id=client_id,
            client_secret=client_secret,
            redirect_base_url=env.get(f"{prefix}_REDIRECT_BASE_URL") or default_base,
            scopes=_split_scopes(raw_scopes) if raw_scopes else default_scopes,
        )
    return configs


BASE_URL = os.getenv("BASE_URL", "http://localhost:3001")
PROVIDER_CONFIGS = load_provider_configs(base_url=BASE_URL)
HTTP_TIMEOUT = _env_float("HTTP_TIMEOUT", 10.0)
OAUTH_STATE_TTL = int(_env_float("OAUTH_STATE_TTL", 600))


# Application security -------------------------------------------------------
SECRET_KEY = _require_env("SECRET_KEY")
JWT_SECRET = _require_env("JWT_SECRET")
JWT_EXPIRES_IN = parse_duration(os.getenv("JWT_EXPIRES_IN", "7d"))
JWT_ISSUER = os.getenv("JWT_ISSUER", "oauth-backend")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "oauth-frontend")

ADMIN_EMAILS = _unique(
    email.lower() for email in _split_csv(os.getenv("ADMIN_EMAILS"))
)


# Frontend -------------------------------------------------------------------
FRONTEND_URL = _require_env("FRONTEND_URL").rstrip("/")
FRONTEND_SUCCESS_PATH = os.getenv("FRONTEND_SUCCESS_PATH", "/auth-success")
FRONTEND_ERROR_PATH = os.getenv("FRONTEND_ERROR_PATH", "/login")

_additional_origins = _split_csv(os.getenv("ADDITIONAL_ALLOWED_ORIGINS"))

_local_dev_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

ALLOWED_CORS_ORIGINS = _unique(
    [
        FRONTEND_URL,
        *_additional_origins,
        *_local_dev_origins,
    ]
)


# Runtime behaviour ----------------------------------------------------------
_PROJECT_ROOT = Path(__file__).resolve().parents[2]
DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{_PROJECT_ROOT / 'data' / 'app.db'}"
DB_RESET = _env_bool("DB_RESET", False)

COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None
COOKIE_SECURE = _env_bool("COOKIE_SECURE", False)
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


__all__ = [
    "ADMIN_EMAILS",
    "ALLOWED_CORS_ORIGINS",
    "BASE_URL",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DATABASE_URL",
    "DB_RESET",
    "DEFAULT_SCOPES",
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
    "load_provider_configs",
    "parse_duration",
]
