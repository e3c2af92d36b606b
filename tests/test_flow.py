"""End-to-end tests of the login flow against stubbed providers."""

from __future__ import annotations

import asyncio
import time
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlalchemy.exc import SQLAlchemyError

from smartclaims.exceptions import (
    AccountInactive,
    ExchangeFailed,
    IssuanceFailed,
    MissingCode,
    ProfileFetchFailed,
    ProviderDenied,
    ResolutionFailed,
    StateMismatch,
)
from smartclaims.services import flow as flow_module
from smartclaims.services.flow import FlowState, OAuthFlow
from smartclaims.services.providers import GitHubProvider, GoogleProvider
from smartclaims.services.state import SESSION_KEY, pop_pending_state


@pytest.fixture
def flow(providers, tokens) -> OAuthFlow:
    return OAuthFlow(providers, tokens, frontend_url="http://frontend.test/")


def _begin(flow: OAuthFlow, name: str):
    browser = {}
    url = flow.begin(flow.get_provider(name), browser)
    state = parse_qs(urlparse(url).query)["state"][0]
    return state, pop_pending_state(browser)


def _complete(flow, session, name, *, code="abc123", state=None, error=None, pending=None):
    return asyncio.run(
        flow.complete(
            flow.get_provider(name),
            code=code,
            state=state,
            error=error,
            pending=pending,
            session=session,
        )
    )


class TestBegin:
    def test_stores_nonce_in_session(self, flow) -> None:
        browser = {}
        url = flow.begin(flow.get_provider("google"), browser)

        pending = browser[SESSION_KEY]
        assert pending["provider"] == "google"
        assert parse_qs(urlparse(url).query)["state"] == [pending["value"]]

    def test_new_flow_replaces_pending_nonce(self, flow) -> None:
        browser = {}
        flow.begin(flow.get_provider("google"), browser)
        first = browser[SESSION_KEY]["value"]
        flow.begin(flow.get_provider("github"), browser)
        assert browser[SESSION_KEY]["value"] != first
        assert browser[SESSION_KEY]["provider"] == "github"

    def test_unknown_provider(self, flow) -> None:
        assert flow.get_provider("myspace") is None
        assert flow.get_provider("GOOGLE") is flow.providers["google"]


class TestComplete:
    def test_google_login(self, flow, session, stub, tokens) -> None:
        stub.google()
        state, pending = _begin(flow, "google")

        result = _complete(flow, session, "google", state=state, pending=pending)

        assert result.state is FlowState.COMPLETED
        assert result.user.email == "a@x.com"
        claims = tokens.verify(result.token)
        assert claims["sub"] == str(result.user.id)
        assert claims["providers"] == ["google"]
        assert result.profile["providers"] == ["google"]

    def test_github_merges_into_existing_account(self, flow, session, stub, tokens) -> None:
        stub.google()
        stub.github()
        state, pending = _begin(flow, "google")
        first = _complete(flow, session, "google", state=state, pending=pending)

        state, pending = _begin(flow, "github")
        second = _complete(flow, session, "github", code="gh-code", state=state, pending=pending)

        assert second.user.id == first.user.id
        assert second.user.login_count == 2
        assert tokens.verify(second.token)["providers"] == ["google", "github"]

    def test_provider_denial_skips_exchange(self, flow, session, stub) -> None:
        stub.google()
        state, pending = _begin(flow, "google")

        with pytest.raises(ProviderDenied) as excinfo:
            _complete(
                flow, session, "google", code=None, state=state, error="access_denied", pending=pending
            )
        assert excinfo.value.state is FlowState.AWAITING_CALLBACK
        assert stub.calls_to(GoogleProvider.token_url) == []

    def test_missing_code(self, flow, session) -> None:
        state, pending = _begin(flow, "google")
        with pytest.raises(MissingCode):
            _complete(flow, session, "google", code=None, state=state, pending=pending)

    def test_state_mismatch_never_exchanges(self, flow, session, stub) -> None:
        stub.google()
        _, pending = _begin(flow, "google")

        with pytest.raises(StateMismatch) as excinfo:
            _complete(flow, session, "google", state="forged", pending=pending)
        assert excinfo.value.code == "state_mismatch"
        assert stub.requests == []

    def test_missing_pending_state(self, flow, session, stub) -> None:
        with pytest.raises(StateMismatch):
            _complete(flow, session, "google", state="whatever", pending=None)
        assert stub.requests == []

    def test_state_for_other_provider_is_rejected(self, flow, session, stub) -> None:
        state, pending = _begin(flow, "google")
        with pytest.raises(StateMismatch):
            _complete(flow, session, "github", state=state, pending=pending)

    def test_stale_state_is_rejected(self, flow, session) -> None:
        state, pending = _begin(flow, "google")
        pending["issued_at"] = int(time.time()) - flow.state_ttl - 5
        with pytest.raises(StateMismatch):
            _complete(flow, session, "google", state=state, pending=pending)

    def test_exchange_failure(self, flow, session, stub) -> None:
        stub.add("POST", GoogleProvider.token_url, httpx.Response(400, json={"error": "invalid_grant"}))
        state, pending = _begin(flow, "google")

        with pytest.raises(ExchangeFailed) as excinfo:
            _complete(flow, session, "google", state=state, pending=pending)
        assert excinfo.value.state is FlowState.EXCHANGING

    def test_profile_failure(self, flow, session, stub) -> None:
        stub.github(emails=[], email=None)
        state, pending = _begin(flow, "github")

        with pytest.raises(ProfileFetchFailed) as excinfo:
            _complete(flow, session, "github", state=state, pending=pending)
        assert excinfo.value.state is FlowState.FETCHING_PROFILE
        assert len(stub.calls_to(GitHubProvider.token_url)) == 1

    def test_resolution_failure(self, flow, session, stub, monkeypatch) -> None:
        stub.google()

        def _broken(*args, **kwargs):
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(flow_module, "resolve_identity", _broken)
        state, pending = _begin(flow, "google")

        with pytest.raises(ResolutionFailed) as excinfo:
            _complete(flow, session, "google", state=state, pending=pending)
        assert excinfo.value.state is FlowState.RESOLVING
        assert isinstance(excinfo.value.__cause__, SQLAlchemyError)

    def test_inactive_account(self, flow, session, stub) -> None:
        stub.google()
        state, pending = _begin(flow, "google")
        user = _complete(flow, session, "google", state=state, pending=pending).user
        user.is_active = False
        session.add(user)
        session.commit()

        state, pending = _begin(flow, "google")
        with pytest.raises(AccountInactive) as excinfo:
            _complete(flow, session, "google", state=state, pending=pending)
        assert excinfo.value.state is FlowState.RESOLVING

    def test_issuance_failure(self, flow, session, stub, monkeypatch) -> None:
        stub.google()

        def _broken(*args, **kwargs):
            raise RuntimeError("signer unavailable")

        monkeypatch.setattr(flow.tokens, "issue", _broken)
        state, pending = _begin(flow, "google")

        with pytest.raises(IssuanceFailed) as excinfo:
            _complete(flow, session, "google", state=state, pending=pending)
        assert excinfo.value.state is FlowState.ISSUING


class TestRedirects:
    def test_success_redirect(self, flow) -> None:
        assert flow.success_redirect("abc.def.ghi") == "http://frontend.test/auth-success?token=abc.def.ghi"

    def test_error_redirect(self, flow) -> None:
        assert (
            flow.error_redirect("state_mismatch", "google")
            == "http://frontend.test/login?error=state_mismatch&provider=google"
        )

    def test_error_redirect_without_provider(self, flow) -> None:
        assert flow.error_redirect("missing_code") == "http://frontend.test/login?error=missing_code"
