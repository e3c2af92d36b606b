"""OAuth initiation and callback routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from ...core import get_session
from ...exceptions import OAuthFlowError
from ...services import OAuthFlow, OAuthProvider, pop_pending_state
from ..deps import get_flow

router = APIRouter(prefix="/auth", tags=["oauth"])


def _provider_or_404(flow: OAuthFlow, provider: str) -> OAuthProvider:
    client = flow.get_provider(provider)
    if client is None:
        raise HTTPException(status_code=404, detail="Unknown OAuth provider")
    return client


@router.get("/{provider}")
def oauth_start(provider: str, request: Request, flow: OAuthFlow = Depends(get_flow)):
    """Redirect the browser to the provider consent screen."""

    client = _provider_or_404(flow, provider)
    return RedirectResponse(flow.begin(client, request.session), status_code=302)


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    session: Session = Depends(get_session),
    flow: OAuthFlow = Depends(get_flow),
):
    client = _provider_or_404(flow, provider)
    pending = pop_pending_state(request.session)
    try:
        result = await flow.complete(
            client, code=code, state=state, error=error, pending=pending, session=session
        )
    except OAuthFlowError as exc:
        return RedirectResponse(flow.error_redirect(exc.code, client.name), status_code=302)
    return RedirectResponse(flow.success_redirect(result.token), status_code=302)


__all__ = ["router"]
