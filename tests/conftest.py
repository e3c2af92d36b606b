"""Shared fixtures for the SmartClaims test suite.

The environment is seeded before any ``smartclaims`` module is imported,
since configuration is read once at import time.
"""

from __future__ import annotations

import os

TEST_ENV = {
    "SECRET_KEY": "test-session-secret",
    "JWT_SECRET": "test-jwt-secret",
    "FRONTEND_URL": "http://frontend.test",
    "BASE_URL": "http://backend.test",
    "GOOGLE_CLIENT_ID": "google-client",
    "GOOGLE_CLIENT_SECRET": "google-secret",
    "FACEBOOK_CLIENT_ID": "facebook-client",
    "FACEBOOK_CLIENT_SECRET": "facebook-secret",
    "GITHUB_CLIENT_ID": "github-client",
    "GITHUB_CLIENT_SECRET": "github-secret",
    "ADMIN_EMAILS": "admin@example.com",
    "DATABASE_URL": "sqlite://",
    "LOG_LEVEL": "WARNING",
}
os.environ.update(TEST_ENV)
for _name in ("GOOGLE", "FACEBOOK", "GITHUB"):
    os.environ.pop(f"{_name}_SCOPES", None)
    os.environ.pop(f"{_name}_REDIRECT_BASE_URL", None)

from typing import Any, Callable, Dict, List, Optional, Tuple, Union  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from smartclaims import models  # noqa: E402,F401
from smartclaims.core.config import load_provider_configs  # noqa: E402
from smartclaims.services.providers import (  # noqa: E402
    FacebookProvider,
    GitHubProvider,
    GoogleProvider,
    ProviderProfile,
    build_providers,
)
from smartclaims.services.tokens import SessionTokenService  # noqa: E402

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]

GITHUB_USER_URL = f"{GitHubProvider.api_base}/user"
GITHUB_EMAILS_URL = f"{GitHubProvider.api_base}/user/emails"


class ProviderStub:
    """Serves canned provider responses through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Responder] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, url: str, response: Responder) -> None:
        self.routes[(method.upper(), url)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, f"{request.url.scheme}://{request.url.host}{request.url.path}")
        responder = self.routes.get(key)
        if responder is None:
            return httpx.Response(404, json={"error": "not_found"})
        if callable(responder):
            return responder(request)
        return responder

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def calls_to(self, url: str) -> List[httpx.Request]:
        return [
            req
            for req in self.requests
            if f"{req.url.scheme}://{req.url.host}{req.url.path}" == url
        ]

    # Canned happy paths ----------------------------------------------------

    def google(self, access_token: str = "tok1", **profile: Any) -> None:
        self.add(
            "POST",
            GoogleProvider.token_url,
            httpx.Response(200, json={"access_token": access_token, "token_type": "Bearer", "expires_in": 3599}),
        )
        body = {"id": "g-42", "email": "a@x.com", "name": "A", "picture": "https://img.test/a.png"}
        body.update(profile)
        self.add("GET", GoogleProvider.userinfo_url, httpx.Response(200, json=body))

    def facebook(self, access_token: str = "fb-tok", **profile: Any) -> None:
        self.add(
            "GET",
            FacebookProvider.token_url,
            httpx.Response(200, json={"access_token": access_token, "token_type": "bearer"}),
        )
        body = {
            "id": "fb-9",
            "email": "a@x.com",
            "name": "A From Facebook",
            "picture": {"data": {"url": "https://img.test/fb.png"}},
        }
        body.update(profile)
        self.add("GET", FacebookProvider.profile_url, httpx.Response(200, json=body))

    def github(
        self,
        access_token: str = "gh-tok",
        emails: Optional[List[Dict[str, Any]]] = None,
        **profile: Any,
    ) -> None:
        self.add(
            "POST",
            GitHubProvider.token_url,
            httpx.Response(200, json={"access_token": access_token, "token_type": "bearer", "scope": "user:email"}),
        )
        body = {"id": 7, "login": "octo", "name": None, "email": None, "avatar_url": "https://img.test/gh.png"}
        body.update(profile)
        self.add("GET", GITHUB_USER_URL, httpx.Response(200, json=body))
        if emails is None:
            emails = [
                {"email": "other@x.com", "primary": False, "verified": True},
                {"email": "a@x.com", "primary": True, "verified": True},
            ]
        self.add("GET", GITHUB_EMAILS_URL, httpx.Response(200, json=emails))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def tokens() -> SessionTokenService:
    return SessionTokenService("test-jwt-secret", expires_in=3600)


@pytest.fixture
def stub() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def provider_configs():
    return load_provider_configs(TEST_ENV)


@pytest.fixture
def providers(stub, provider_configs):
    return build_providers(provider_configs, http_client=stub.client())


@pytest.fixture
def make_profile() -> Callable[..., ProviderProfile]:
    def _make(
        provider: str = "google",
        provider_id: str = "g-42",
        email: str = "a@x.com",
        name: str = "A",
        avatar_url: Optional[str] = None,
    ) -> ProviderProfile:
        return ProviderProfile(
            provider=provider,
            provider_id=provider_id,
            email=email,
            name=name,
            avatar_url=avatar_url,
        )

    return _make


@pytest.fixture
def app(engine, providers, tokens):
    from smartclaims.app import create_app
    from smartclaims.core import get_session

    app = create_app(providers=providers, tokens=tokens)

    def _session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, follow_redirects=False)
