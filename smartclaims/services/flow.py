"""OAuth login flow orchestration.

A login attempt moves through ``FlowState`` in a fixed order::

    INITIATED -> AWAITING_CALLBACK -> EXCHANGING -> FETCHING_PROFILE
              -> RESOLVING -> ISSUING -> COMPLETED

and can terminate in ``FAILED`` from any non-terminal state. Every step
error is converted to exactly one :class:`OAuthFlowError` subclass before
it leaves this module. Nothing is retried; the user starts a new flow.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Optional, Type
from urllib.parse import urlencode

from sqlmodel import Session

from ..exceptions import (
    ExchangeFailed,
    IssuanceFailed,
    MissingCode,
    OAuthFlowError,
    ProfileFetchFailed,
    ProviderDenied,
    ResolutionFailed,
    StateMismatch,
)
from ..models import User
from .identity import linked_providers, resolve_identity
from .providers import OAuthProvider
from .state import generate_state, remember_state, state_matches
from .tokens import SessionTokenService
from .users import public_profile

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    INITIATED = "initiated"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    FETCHING_PROFILE = "fetching_profile"
    RESOLVING = "resolving"
    ISSUING = "issuing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class FlowResult:
    """Outcome of a completed login."""

    user: User
    token: str
    profile: Dict[str, Any]
    state: FlowState = FlowState.COMPLETED


class OAuthFlow:
    """Sequences state check, code exchange, profile fetch, identity
    resolution and credential issuance for one callback.

    Built once at startup and shared by every request; it holds no
    per-request state.
    """

    def __init__(
        self,
        providers: Mapping[str, OAuthProvider],
        tokens: SessionTokenService,
        state_ttl: int = 600,
        frontend_url: str = "http://localhost:3000",
        success_path: str = "/auth-success",
        error_path: str = "/login",
    ) -> None:
        self.providers = dict(providers)
        self.tokens = tokens
        self.state_ttl = state_ttl
        self.frontend_url = frontend_url.rstrip("/")
        self.success_path = success_path
        self.error_path = error_path

    def get_provider(self, name: str) -> Optional[OAuthProvider]:
        return self.providers.get((name or "").lower())

    def begin(self, provider: OAuthProvider, session: MutableMapping[str, Any]) -> str:
        """Issue a state nonce into ``session`` and return the consent URL."""

        state = generate_state()
        remember_state(session, provider.name, state)
        logger.debug("%s flow %s", provider.name, FlowState.INITIATED.value)
        return provider.build_authorization_url(state)

    async def complete(
        self,
        provider: OAuthProvider,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str],
        pending: Optional[Dict[str, Any]],
        session: Session,
    ) -> FlowResult:
        """Run a callback to completion.

        ``pending`` is the nonce record already removed from the browser
        session; it is never reused.

        Raises
        ------
        OAuthFlowError
            The attempt terminated in ``FAILED``; ``exc.state`` names the
            state it failed in and ``exc.code`` the machine-readable kind.
        """

        try:
            return await self._run(
                provider, code=code, state=state, error=error, pending=pending, session=session
            )
        except OAuthFlowError as exc:
            logger.warning(
                "%s login failed in %s: %s",
                provider.name,
                exc.state.value if isinstance(exc.state, FlowState) else exc.state,
                exc.code,
            )
            raise

    async def _run(
        self,
        provider: OAuthProvider,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str],
        pending: Optional[Dict[str, Any]],
        session: Session,
    ) -> FlowResult:
        name = provider.name
        waiting = FlowState.AWAITING_CALLBACK

        if error:
            raise ProviderDenied(
                "Provider returned an error", provider=name, state=waiting, error=error
            )
        if not code:
            raise MissingCode("Callback carried no authorization code", provider=name, state=waiting)
        if not state_matches(pending, name, state, self.state_ttl):
            raise StateMismatch(
                "State does not match the pending nonce", provider=name, state=waiting
            )

        with self._step(name, FlowState.EXCHANGING, ExchangeFailed):
            token_response = await provider.exchange_code(code)

        with self._step(name, FlowState.FETCHING_PROFILE, ProfileFetchFailed):
            profile = await provider.fetch_profile(token_response.access_token)

        with self._step(name, FlowState.RESOLVING, ResolutionFailed):
            user = resolve_identity(session, profile)
            providers = linked_providers(session, user)

        with self._step(name, FlowState.ISSUING, IssuanceFailed):
            token = self.tokens.issue(user, providers)

        logger.info("%s login completed for user %s", name, user.id)
        return FlowResult(user=user, token=token, profile=public_profile(user, providers))

    @contextmanager
    def _step(
        self, provider: str, state: FlowState, failure: Type[OAuthFlowError]
    ) -> Iterator[None]:
        logger.debug("%s flow %s", provider, state.value)
        try:
            yield
        except OAuthFlowError as exc:
            if exc.state is None:
                exc.state = state
            raise
        except Exception as exc:
            logger.exception("%s flow failed unexpectedly while %s", provider, state.value)
            raise failure(
                f"Unexpected error while {state.value}", provider=provider, state=state
            ) from exc

    def success_redirect(self, token: str) -> str:
        return f"{self.frontend_url}{self.success_path}?{urlencode({'token': token})}"

    def error_redirect(self, code: str, provider: Optional[str] = None) -> str:
        params = {"error": code}
        if provider:
            params["provider"] = provider
        return f"{self.frontend_url}{self.error_path}?{urlencode(params)}"


__all__ = ["FlowResult", "FlowState", "OAuthFlow"]
