"""CSRF state nonces for the OAuth redirect round trip.

The pending nonce lives in the signed browser session under a single key,
so each browser has at most one login in flight. It is removed as soon as
the callback arrives, whether or not it matches.
"""

from __future__ import annotations

import hmac
import time
from typing import Any, Dict, MutableMapping, Optional

from authlib.common.security import generate_token

SESSION_KEY = "oauth_state"

# 48 characters drawn from [A-Za-z0-9] carry about 285 bits of entropy.
STATE_LENGTH = 48


def generate_state() -> str:
    """Return a fresh URL-safe state nonce."""

    return generate_token(STATE_LENGTH)


def remember_state(
    session: MutableMapping[str, Any],
    provider: str,
    state: str,
    now: Optional[float] = None,
) -> None:
    session[SESSION_KEY] = {
        "value": state,
        "provider": provider,
        "issued_at": int(now if now is not None else time.time()),
    }


def pop_pending_state(session: MutableMapping[str, Any]) -> Optional[Dict[str, Any]]:
    pending = session.pop(SESSION_KEY, None)
    return pending if isinstance(pending, dict) else None


def state_matches(
    pending: Optional[Dict[str, Any]],
    provider: str,
    returned: Optional[str],
    ttl: int,
    now: Optional[float] = None,
) -> bool:
    """Check a returned ``state`` against the nonce issued for ``provider``."""

    if not pending or not returned:
        return False
    expected = pending.get("value")
    if not isinstance(expected, str) or pending.get("provider") != provider:
        return False
    issued_at = pending.get("issued_at")
    current = now if now is not None else time.time()
    if not isinstance(issued_at, int) or current - issued_at > ttl:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), returned.encode("utf-8"))


__all__ = [
    "SESSION_KEY",
    "generate_state",
    "pop_pending_state",
    "remember_state",
    "state_matches",
]
