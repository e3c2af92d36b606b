"""SmartClaims exception hierarchy.

Every project error derives from :class:`SmartClaimsError`. OAuth flow
failures and credential failures carry a short machine-readable ``code``
that is safe to hand to the browser; the message and context stay in the
server logs.
"""

from __future__ import annotations

from typing import Any, Optional


class SmartClaimsError(Exception):
    """Base exception for all SmartClaims errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(SmartClaimsError, RuntimeError):
    """Required configuration is missing or invalid.

    Raised at process start; never a per-request condition.
    """


# OAuth flow ------------------------------------------------------------------


class OAuthFlowError(SmartClaimsError):
    """A login attempt terminated in ``Failed``.

    ``state`` is the flow state the attempt was in when it failed. The
    attempt is never retried; the user has to start a new flow.
    """

    code = "oauth_failed"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        state: Any = None,
        **context: Any,
    ) -> None:
        super().__init__(message, provider=provider, **context)
        self.provider = provider
        self.state = state


class ProviderDenied(OAuthFlowError):
    """The provider redirected back with an ``error`` parameter."""

    code = "provider_denied"


class MissingCode(OAuthFlowError):
    """The callback carried no authorization code."""

    code = "missing_code"


class StateMismatch(OAuthFlowError):
    """The returned state is absent, stale, or not the nonce we issued."""

    code = "state_mismatch"


class ExchangeFailed(OAuthFlowError):
    """The provider token endpoint rejected the code or was unreachable."""

    code = "exchange_failed"


class ProfileFetchFailed(OAuthFlowError):
    """The provider profile endpoint failed or returned an unusable profile."""

    code = "profile_fetch_failed"


class ResolutionFailed(OAuthFlowError):
    """The user store could not map the identity onto a local user."""

    code = "resolution_failed"


class AccountInactive(OAuthFlowError):
    """The identity resolved to a deactivated local account."""

    code = "account_inactive"


class IssuanceFailed(OAuthFlowError):
    """The session credential could not be signed."""

    code = "issuance_failed"


# Session credentials ---------------------------------------------------------


class CredentialError(SmartClaimsError):
    """A bearer credential was rejected."""

    code = "invalid_token"
    kind = "unknown"


class TokenExpired(CredentialError):
    """Signature is valid but the credential is past its expiry."""

    code = "token_expired"
    kind = "expired"


class TokenMalformed(CredentialError):
    """Signature is invalid or the credential cannot be parsed."""

    code = "invalid_token"
    kind = "malformed"


class TokenVerificationFailed(CredentialError):
    """Any other verification failure (issuer, audience, claims)."""

    code = "invalid_token"
    kind = "unknown"


class MissingToken(CredentialError):
    """No bearer credential was presented."""

    code = "missing_token"
    kind = "missing"


class UserNotFound(CredentialError):
    """The credential names a user that does not exist or is inactive."""

    code = "user_not_found"
    kind = "user"


__all__ = [
    "AccountInactive",
    "ConfigurationError",
    "CredentialError",
    "ExchangeFailed",
    "IssuanceFailed",
    "MissingCode",
    "MissingToken",
    "OAuthFlowError",
    "ProfileFetchFailed",
    "ProviderDenied",
    "ResolutionFailed",
    "SmartClaimsError",
    "StateMismatch",
    "TokenExpired",
    "TokenMalformed",
    "TokenVerificationFailed",
    "UserNotFound",
]
