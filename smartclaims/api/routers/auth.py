"""Session credential routes: profile, logout, health and statistics."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from ...core import ADMIN_EMAILS, get_session, isoformat, utcnow
from ...models import User
from ...services import linked_providers, public_profile, user_stats
from ...services.providers import PROVIDER_CLASSES
from ..deps import get_current_user, get_flow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_ADMIN_EMAILS = {email.strip().lower() for email in ADMIN_EMAILS if email}


@router.get("/profile")
def profile(
    user: User = Depends(get_current_user), session: Session = Depends(get_session)
):
    """Return the public profile of the bearer."""

    return {"success": True, "user": public_profile(user, linked_providers(session, user))}


@router.post("/logout")
def logout(request: Request):
    # Credentials are stateless; the client discards its token.
    request.session.clear()
    return {"success": True, "message": "Logged out successfully"}


@router.get("/health")
def auth_health(request: Request, session: Session = Depends(get_session)):
    """Report database reachability and which providers are configured."""

    flow = get_flow(request)
    try:
        user_count = session.exec(select(func.count()).select_from(User)).one()
    except SQLAlchemyError as exc:
        logger.error("Auth health check failed: %r", exc)
        return JSONResponse(
            {"success": False, "status": "unhealthy", "database": {"connected": False}},
            status_code=503,
        )

    return {
        "success": True,
        "status": "healthy",
        "timestamp": isoformat(utcnow()),
        "database": {"connected": True, "user_count": user_count},
        "oauth": {name: name in flow.providers for name in PROVIDER_CLASSES},
        "jwt": {"configured": getattr(request.app.state, "tokens", None) is not None},
    }


@router.get("/stats")
def stats(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    if user.email.lower() not in _ADMIN_EMAILS:
        raise HTTPException(status_code=403, detail="Admin access required")
    return {"success": True, "stats": user_stats(session)}


__all__ = ["router"]
