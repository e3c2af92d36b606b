"""Exception handlers translating domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..exceptions import CredentialError

_CREDENTIAL_MESSAGES = {
    "missing_token": "Authorization token required",
    "invalid_token": "Invalid authentication token",
    "token_expired": "Authentication token has expired",
    "user_not_found": "User account not found or inactive",
}


async def credential_error_handler(request: Request, exc: CredentialError) -> JSONResponse:
    return JSONResponse(
        {
            "success": False,
            "error": exc.code,
            "message": _CREDENTIAL_MESSAGES.get(exc.code, "Authentication failed"),
        },
        status_code=401,
        headers={"WWW-Authenticate": "Bearer"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CredentialError, credential_error_handler)


__all__ = ["credential_error_handler", "register_exception_handlers"]
