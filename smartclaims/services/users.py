"""Helpers for user domain objects."""

from __future__ import annotations

from typing import Any, Dict, List

from sqlmodel import Session, func, select

from ..core.time import isoformat
from ..models import ProviderLink, User
from .providers import PROVIDER_CLASSES


def public_profile(user: User, providers: List[str]) -> Dict[str, Any]:
    """Serialise a user to the profile shape safe to send to the frontend."""

    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "avatar_url": user.avatar_url,
        "providers": providers,
        "is_email_verified": user.is_email_verified,
        "login_count": user.login_count,
        "last_login_at": isoformat(user.last_login_at),
        "created_at": isoformat(user.created_at),
    }


def user_stats(session: Session) -> Dict[str, int]:
    """Count users overall, active users, and users per provider."""

    stats = {
        "total_users": session.exec(select(func.count()).select_from(User)).one(),
        "active_users": session.exec(
            select(func.count()).select_from(User).where(User.is_active == True)  # noqa: E712
        ).one(),
    }
    for provider in PROVIDER_CLASSES:
        stats[f"{provider}_users"] = session.exec(
            select(func.count(func.distinct(ProviderLink.user_id))).where(
                ProviderLink.provider == provider
            )
        ).one()
    return stats


__all__ = ["public_profile", "user_stats"]
