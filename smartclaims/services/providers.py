"""OAuth provider clients.

Each supported provider implements the same capability set: build the
authorization URL, exchange an authorization code for an access token, and
fetch the remote profile normalized into a :class:`ProviderProfile`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type
from urllib.parse import urlencode

import httpx

from ..core.config import ProviderConfig
from ..exceptions import ExchangeFailed, ProfileFetchFailed

logger = logging.getLogger(__name__)

USER_AGENT = "smartclaims-backend"


@dataclass(frozen=True)
class TokenResponse:
    """Access token returned by a provider token endpoint."""

    access_token: str
    token_type: str = "bearer"
    scope: Optional[str] = None
    expires_in: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class ProviderProfile:
    """Remote profile normalized across providers."""

    provider: str
    provider_id: str
    email: str
    name: str
    avatar_url: Optional[str] = None


class OAuthProvider(ABC):
    """Base class for an OAuth2 authorization-code provider.

    Parameters
    ----------
    config : ProviderConfig
        Client registration (id, secret, redirect base, scopes).
    http_client : httpx.AsyncClient, optional
        Shared client; one is created lazily with ``timeout`` otherwise.
    timeout : float
        Seconds before any outbound call is abandoned.
    """

    name: str = ""
    authorize_url: str = ""
    token_url: str = ""
    scope_separator: str = " "
    extra_authorize_params: Mapping[str, str] = {}

    def __init__(
        self,
        config: ProviderConfig,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.config = config
        self.timeout = timeout
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout, headers={"User-Agent": USER_AGENT}
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
        self._http_client = None

    @property
    def redirect_uri(self) -> str:
        return self.config.redirect_uri

    def build_authorization_url(self, state: str) -> str:
        """Return the provider consent URL carrying ``state`` verbatim."""

        params: Dict[str, str] = {
            "client_id": self.config.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope_separator.join(self.config.scopes),
            "state": state,
        }
        params.update(self.extra_authorize_params)
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenResponse:
        """Trade an authorization code for an access token.

        Codes are single-use, so there is exactly one attempt.

        Raises
        ------
        ExchangeFailed
            On a non-2xx response, a network error or timeout, or a body
            without an access token.
        """

        client = await self._get_client()
        try:
            response = await self._token_request(client, code)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("%s token exchange failed with status %s", self.name, status)
            raise ExchangeFailed(
                f"Token exchange failed: {status}", provider=self.name
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s token exchange request failed: %r", self.name, exc)
            raise ExchangeFailed(
                f"Token exchange request failed: {exc.__class__.__name__}",
                provider=self.name,
            ) from exc
        except ValueError as exc:
            raise ExchangeFailed(
                "Token endpoint returned a non-JSON body", provider=self.name
            ) from exc

        if not isinstance(payload, dict) or not payload.get("access_token") or payload.get("error"):
            error = payload.get("error") if isinstance(payload, dict) else None
            logger.warning("%s token endpoint returned no access token (error=%s)", self.name, error)
            raise ExchangeFailed(
                "Token endpoint returned no access token", provider=self.name, error=error
            )

        try:
            expires_in = int(payload["expires_in"]) if "expires_in" in payload else None
        except (TypeError, ValueError):
            expires_in = None
        return TokenResponse(
            access_token=payload["access_token"],
            token_type=payload.get("token_type") or "bearer",
            scope=payload.get("scope"),
            expires_in=expires_in,
            raw=payload,
        )

    async def fetch_profile(self, access_token: str) -> ProviderProfile:
        """Fetch and normalize the remote profile.

        Raises
        ------
        ProfileFetchFailed
            On any HTTP failure or when the profile lacks an id or email.
        """

        client = await self._get_client()
        try:
            return await self._fetch_profile(client, access_token)
        except ProfileFetchFailed:
            raise
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("%s profile fetch failed with status %s", self.name, status)
            raise ProfileFetchFailed(
                f"Profile fetch failed: {status}", provider=self.name
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s profile request failed: %r", self.name, exc)
            raise ProfileFetchFailed(
                f"Profile request failed: {exc.__class__.__name__}", provider=self.name
            ) from exc
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ProfileFetchFailed(
                "Unexpected profile payload", provider=self.name
            ) from exc

    @abstractmethod
    async def _token_request(self, client: httpx.AsyncClient, code: str) -> httpx.Response:
        """Send the provider-specific token request."""

    @abstractmethod
    async def _fetch_profile(
        self, client: httpx.AsyncClient, access_token: str
    ) -> ProviderProfile:
        """Provider-specific profile retrieval."""

    @staticmethod
    async def _get_json(client: httpx.AsyncClient, url: str, **kwargs: Any) -> Any:
        response = await client.get(url, **kwargs)
        response.raise_for_status()
        return response.json()

    def _normalize(
        self,
        provider_id: Any,
        email: Optional[str],
        name: Optional[str],
        avatar_url: Optional[str],
    ) -> ProviderProfile:
        provider_id = str(provider_id).strip() if provider_id is not None else ""
        email = (email or "").strip().lower()
        if not provider_id:
            raise ProfileFetchFailed("Profile has no user id", provider=self.name)
        if not email:
            raise ProfileFetchFailed(
                "Provider did not disclose an email address", provider=self.name
            )
        return ProviderProfile(
            provider=self.name,
            provider_id=provider_id,
            email=email,
            name=(name or "").strip() or email.split("@")[0],
            avatar_url=avatar_url or None,
        )


class GoogleProvider(OAuthProvider):
    name = "google"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    userinfo_url = "https://www.googleapis.com/oauth2/v2/userinfo"
    extra_authorize_params = {"access_type": "offline", "prompt": "select_account"}

    async def _token_request(self, client: httpx.AsyncClient, code: str) -> httpx.Response:
        return await client.post(
            self.token_url,
            data={
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            },
            headers={"Accept": "application/json"},
        )

    async def _fetch_profile(
        self, client: httpx.AsyncClient, access_token: str
    ) -> ProviderProfile:
        data = await self._get_json(
            client,
            self.userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return self._normalize(
            data.get("id"), data.get("email"), data.get("name"), data.get("picture")
        )


class FacebookProvider(OAuthProvider):
    name = "facebook"
    authorize_url = "https://www.facebook.com/v18.0/dialog/oauth"
    token_url = "https://graph.facebook.com/v18.0/oauth/access_token"
    profile_url = "https://graph.facebook.com/me"
    scope_separator = ","

    async def _token_request(self, client: httpx.AsyncClient, code: str) -> httpx.Response:
        return await client.get(
            self.token_url,
            params={
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri,
            },
        )

    async def _fetch_profile(
        self, client: httpx.AsyncClient, access_token: str
    ) -> ProviderProfile:
        data = await self._get_json(
            client,
            self.profile_url,
            params={
                "fields": "id,name,email,picture.type(large)",
                "access_token": access_token,
            },
        )
        picture = ((data.get("picture") or {}).get("data") or {}).get("url")
        return self._normalize(data.get("id"), data.get("email"), data.get("name"), picture)


def select_github_email(emails: Iterable[Mapping[str, Any]]) -> Optional[str]:
    """Pick the primary verified address from ``GET /user/emails``.

    Falls back to the primary address, then the first verified one, then
    the first entry.
    """

    candidates: List[Mapping[str, Any]] = [
        entry for entry in emails if isinstance(entry, Mapping) and entry.get("email")
    ]
    for predicate in (
        lambda e: e.get("primary") and e.get("verified"),
        lambda e: e.get("primary"),
        lambda e: e.get("verified"),
    ):
        for entry in candidates:
            if predicate(entry):
                return entry["email"]
    return candidates[0]["email"] if candidates else None


class GitHubProvider(OAuthProvider):
    name = "github"
    authorize_url = "https://github.com/login/oauth/authorize"
    token_url = "https://github.com/login/oauth/access_token"
    api_base = "https://api.github.com"

    async def _token_request(self, client: httpx.AsyncClient, code: str) -> httpx.Response:
        # GitHub answers form-encoded unless JSON is requested explicitly.
        return await client.post(
            self.token_url,
            data={
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri,
            },
            headers={"Accept": "application/json"},
        )

    async def _fetch_profile(
        self, client: httpx.AsyncClient, access_token: str
    ) -> ProviderProfile:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        user = await self._get_json(client, f"{self.api_base}/user", headers=headers)
        emails = await self._get_json(client, f"{self.api_base}/user/emails", headers=headers)
        email = select_github_email(emails if isinstance(emails, list) else [])
        return self._normalize(
            user.get("id"),
            email or user.get("email"),
            user.get("name") or user.get("login"),
            user.get("avatar_url"),
        )


PROVIDER_CLASSES: Dict[str, Type[OAuthProvider]] = {
    cls.name: cls for cls in (GoogleProvider, FacebookProvider, GitHubProvider)
}


def build_providers(
    configs: Mapping[str, ProviderConfig],
    http_client: httpx.AsyncClient | None = None,
    timeout: float = 10.0,
) -> Dict[str, OAuthProvider]:
    """Instantiate a provider client for every configured registration."""

    return {
        name: PROVIDER_CLASSES[name](config, http_client=http_client, timeout=timeout)
        for name, config in configs.items()
    }


__all__ = [
    "FacebookProvider",
    "GitHubProvider",
    "GoogleProvider",
    "OAuthProvider",
    "PROVIDER_CLASSES",
    "ProviderProfile",
    "TokenResponse",
    "build_providers",
    "select_github_email",
]
