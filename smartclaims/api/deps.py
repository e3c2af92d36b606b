"""Shared FastAPI dependencies."""

from __future__ import annotations

import logging
import uuid

from fastapi import Depends, Request
from sqlmodel import Session

from ..core import get_session
from ..exceptions import MissingToken, TokenMalformed, TokenVerificationFailed, UserNotFound
from ..models import User
from ..services import OAuthFlow, SessionTokenService

logger = logging.getLogger(__name__)


def get_flow(request: Request) -> OAuthFlow:
    return request.app.state.flow


def get_tokens(request: Request) -> SessionTokenService:
    return request.app.state.tokens


def _bearer_token(request: Request) -> str:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise MissingToken("Authorization token required")
    return token.strip()


def get_current_user(
    request: Request,
    session: Session = Depends(get_session),
    tokens: SessionTokenService = Depends(get_tokens),
) -> User:
    """Resolve the bearer credential to an active user."""

    token = _bearer_token(request)
    try:
        claims = tokens.verify(token)
    except TokenMalformed as exc:
        client = request.client.host if request.client else "unknown"
        logger.warning("Rejected malformed credential from %s: %s", client, exc.message)
        raise

    try:
        user_id = uuid.UUID(str(claims.get("sub")))
    except ValueError as exc:
        raise TokenVerificationFailed("Credential subject is not a user id") from exc

    user = session.get(User, user_id)
    if user is None or not user.is_active:
        raise UserNotFound("User account not found or inactive", user_id=str(user_id))
    return user


__all__ = ["get_current_user", "get_flow", "get_tokens"]
