"""Session credential issuance and verification.

Credentials are stateless HS256 JWTs: verification needs only the signing
secret, and there is no server-side revocation list.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, Optional

from authlib.jose import JsonWebToken
from authlib.jose.errors import (
    BadSignatureError,
    DecodeError,
    ExpiredTokenError,
    JoseError,
    UnsupportedAlgorithmError,
)

from ..exceptions import (
    ConfigurationError,
    IssuanceFailed,
    TokenExpired,
    TokenMalformed,
    TokenVerificationFailed,
)
from ..models import User

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 7 * 24 * 3600


class SessionTokenService:
    """Sign and verify session credentials with a server-held secret."""

    algorithm = "HS256"

    def __init__(
        self,
        secret: str,
        expires_in: int = DEFAULT_EXPIRES_IN,
        issuer: str = "oauth-backend",
        audience: str = "oauth-frontend",
    ) -> None:
        if not secret:
            raise ConfigurationError("JWT signing secret is not configured")
        self._secret = secret
        self.expires_in = expires_in
        self.issuer = issuer
        self.audience = audience
        self._jwt = JsonWebToken([self.algorithm])
        self._claims_options = {
            "iss": {"essential": True, "value": issuer},
            "aud": {"essential": True, "value": audience},
            "sub": {"essential": True},
            "exp": {"essential": True},
        }

    def issue(
        self, user: User, providers: Iterable[str], now: Optional[float] = None
    ) -> str:
        issued_at = int(now if now is not None else time.time())
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "avatar": user.avatar_url or "",
            "providers": list(providers),
            "iat": issued_at,
            "exp": issued_at + self.expires_in,
            "iss": self.issuer,
            "aud": self.audience,
        }
        try:
            token = self._jwt.encode({"alg": self.algorithm, "typ": "JWT"}, payload, self._secret)
        except (JoseError, ValueError, TypeError) as exc:
            raise IssuanceFailed(
                "Failed to sign session credential", user_id=str(user.id)
            ) from exc
        return token.decode("ascii") if isinstance(token, bytes) else token

    def verify(self, token: str, now: Optional[float] = None) -> Dict[str, Any]:
        """Return the claims of a credential signed by this server.

        Raises
        ------
        TokenExpired
            The signature is valid but ``exp`` has passed.
        TokenMalformed
            The signature does not match or the input cannot be parsed.
        TokenVerificationFailed
            Any other rejection (issuer, audience, missing subject).
        """

        try:
            claims = self._jwt.decode(token, self._secret, claims_options=self._claims_options)
        except BadSignatureError as exc:
            raise TokenMalformed("Credential signature is invalid") from exc
        except (DecodeError, UnsupportedAlgorithmError) as exc:
            raise TokenMalformed("Credential could not be parsed") from exc
        except JoseError as exc:
            raise TokenVerificationFailed(f"Credential rejected: {exc.error}") from exc
        except (ValueError, TypeError) as exc:
            raise TokenMalformed("Credential could not be parsed") from exc

        try:
            claims.validate(now=int(now) if now is not None else None, leeway=0)
        except ExpiredTokenError as exc:
            raise TokenExpired("Credential has expired") from exc
        except JoseError as exc:
            raise TokenVerificationFailed(f"Credential rejected: {exc.error}") from exc

        return dict(claims)


__all__ = ["DEFAULT_EXPIRES_IN", "SessionTokenService"]
