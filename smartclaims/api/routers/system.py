"""System-level API endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ...core import isoformat, utcnow

router = APIRouter(tags=["system"])


@router.get("/")
def index(request: Request) -> Dict[str, Any]:
    """Describe the available endpoints."""

    providers = sorted(request.app.state.flow.providers)
    authentication = {
        f"GET /auth/{name}": f"Initiate {name} OAuth flow" for name in providers
    }
    authentication.update(
        {
            "GET /auth/profile": "Current user profile (Bearer token required)",
            "POST /auth/logout": "Logout current user",
            "GET /auth/health": "Auth subsystem health",
            "GET /auth/stats": "User statistics (admin only)",
        }
    )
    return {
        "name": request.app.title,
        "version": request.app.version,
        "endpoints": {
            "authentication": authentication,
            "system": {"GET /health": "Basic health check"},
        },
    }


@router.get("/health")
def health() -> Dict[str, Any]:
    """Simple readiness probe."""

    return {"ok": True, "timestamp": isoformat(utcnow())}


@router.get("/healthz")
def healthz() -> JSONResponse:
    """Kubernetes-style readiness endpoint."""

    return JSONResponse({"ok": True})


__all__ = ["router"]
