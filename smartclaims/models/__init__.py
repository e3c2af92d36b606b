"""Database model exports."""

from .provider_link import ProviderLink
from .user import User

__all__ = [
    "ProviderLink",
    "User",
]
