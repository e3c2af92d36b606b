"""Identity resolution: map provider identities onto local users.

Lookup order is provider identity first, then email, then a new account.
Provider ids are stable at the provider while emails may change, so the
identity match wins; the email match lets one person sign in through
several providers and land on the same account.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from ..core.time import utcnow
from ..exceptions import AccountInactive, ResolutionFailed
from ..models import ProviderLink, User
from .providers import ProviderProfile

logger = logging.getLogger(__name__)


def find_by_provider_identity(
    session: Session, provider: str, provider_id: str
) -> Optional[User]:
    return session.exec(
        select(User)
        .join(ProviderLink, ProviderLink.user_id == User.id)
        .where(
            ProviderLink.provider == provider,
            ProviderLink.provider_user_id == provider_id,
        )
    ).first()


def find_by_email(session: Session, email: str) -> Optional[User]:
    normalized = (email or "").strip().lower()
    if not normalized:
        return None
    return session.exec(
        select(User).where(func.lower(User.email) == normalized)
    ).first()


def linked_providers(session: Session, user: User) -> List[str]:
    """Provider names linked to ``user`` in link order."""

    return list(
        session.exec(
            select(ProviderLink.provider)
            .where(ProviderLink.user_id == user.id)
            .order_by(ProviderLink.id)
        ).all()
    )


def create_user(
    session: Session, profile: ProviderProfile, now: Optional[datetime] = None
) -> User:
    """Stage a new user holding a single provider link."""

    now = now or utcnow()
    user = User(
        email=profile.email.strip().lower(),
        name=profile.name,
        avatar_url=profile.avatar_url,
        login_count=1,
        last_login_at=now,
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    session.add(
        ProviderLink(
            user_id=user.id,
            provider=profile.provider,
            provider_user_id=profile.provider_id,
            linked_at=now,
        )
    )
    return user


def add_provider_link(
    session: Session,
    user: User,
    provider: str,
    provider_id: str,
    now: Optional[datetime] = None,
) -> bool:
    """Link ``(provider, provider_id)`` to ``user`` unless already linked.

    A user keeps at most one link per provider. Returns True when a new
    link was staged.
    """

    existing = session.exec(
        select(ProviderLink).where(
            ProviderLink.user_id == user.id, ProviderLink.provider == provider
        )
    ).first()
    if existing is not None:
        if existing.provider_user_id != provider_id:
            logger.warning(
                "User %s is already linked to another %s identity; keeping it",
                user.id,
                provider,
            )
        return False

    session.add(
        ProviderLink(
            user_id=user.id,
            provider=provider,
            provider_user_id=provider_id,
            linked_at=now or utcnow(),
        )
    )
    return True


def record_login(
    session: Session,
    user: User,
    profile: Optional[ProviderProfile] = None,
    now: Optional[datetime] = None,
) -> User:
    """Bump login counters; display metadata follows the latest provider."""

    now = now or utcnow()
    user.login_count = (user.login_count or 0) + 1
    user.last_login_at = now
    if profile is not None:
        if profile.name:
            user.name = profile.name
        if profile.avatar_url:
            user.avatar_url = profile.avatar_url
    user.updated_at = now
    session.add(user)
    return user


def _ensure_active(user: User, profile: ProviderProfile) -> None:
    if not user.is_active:
        raise AccountInactive(
            "Account is deactivated", provider=profile.provider, user_id=str(user.id)
        )


def _resolve_once(session: Session, profile: ProviderProfile) -> User:
    user = find_by_provider_identity(session, profile.provider, profile.provider_id)
    if user is not None:
        _ensure_active(user, profile)
        record_login(session, user, profile)
        outcome = "matched provider identity"
    else:
        user = find_by_email(session, profile.email)
        if user is not None:
            _ensure_active(user, profile)
            add_provider_link(session, user, profile.provider, profile.provider_id)
            record_login(session, user, profile)
            outcome = "matched email"
        else:
            user = create_user(session, profile)
            outcome = "created"

    session.commit()
    session.refresh(user)
    logger.info("Resolved %s login for user %s (%s)", profile.provider, user.id, outcome)
    return user


def resolve_identity(session: Session, profile: ProviderProfile) -> User:
    """Find, link, or create the local user for ``profile``.

    A uniqueness violation means a concurrent login created the identity
    first; the lookup runs once more and finds it.

    Raises
    ------
    AccountInactive
        The matching account is deactivated.
    ResolutionFailed
        The identity still conflicts after the second lookup.
    """

    try:
        return _resolve_once(session, profile)
    except IntegrityError:
        session.rollback()
        logger.info(
            "Concurrent login created %s/%s first; retrying lookup",
            profile.provider,
            profile.provider_id,
        )

    try:
        return _resolve_once(session, profile)
    except IntegrityError as exc:
        session.rollback()
        raise ResolutionFailed(
            "Identity conflicts with an existing account",
            provider=profile.provider,
        ) from exc


__all__ = [
    "add_provider_link",
    "create_user",
    "find_by_email",
    "find_by_provider_identity",
    "linked_providers",
    "record_login",
    "resolve_identity",
]
