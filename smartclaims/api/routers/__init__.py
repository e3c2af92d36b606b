"""Aggregate API routers."""

from fastapi import APIRouter

from .auth import router as auth_router
from .oauth import router as oauth_router
from .system import router as system_router

# auth_router must precede oauth_router: "/auth/{provider}" would shadow
# the fixed "/auth/profile" style paths otherwise.
ALL_ROUTERS: tuple[APIRouter, ...] = (
    system_router,
    auth_router,
    oauth_router,
)

__all__ = ["ALL_ROUTERS"]
