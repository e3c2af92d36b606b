"""Database model for local user accounts."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from ..core.time import utcnow


class User(SQLModel, table=True):
    """Local account, possibly linked to several OAuth identities.

    ``email`` is stored lower-cased and is the cross-provider merge key.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, nullable=False)
    email: str = Field(index=True, unique=True)
    name: str
    avatar_url: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    is_email_verified: bool = True
    login_count: int = 0
    last_login_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


__all__ = ["User"]
