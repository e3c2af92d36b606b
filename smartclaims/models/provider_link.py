"""Database model linking OAuth identities to local users."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from ..core.time import utcnow


class ProviderLink(SQLModel, table=True):
    """One ``(provider, provider_user_id)`` identity owned by a user."""

    __tablename__ = "provider_links"
    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name="uq_provider_identity"),
        UniqueConstraint("user_id", "provider", name="uq_user_provider"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True, nullable=False)
    provider: str = Field(index=True)
    provider_user_id: str
    linked_at: datetime = Field(default_factory=utcnow)


__all__ = ["ProviderLink"]
