"""Service layer: providers, identity resolution, credentials, login flow."""

from .flow import FlowResult, FlowState, OAuthFlow
from .identity import linked_providers, resolve_identity
from .providers import OAuthProvider, ProviderProfile, build_providers
from .state import generate_state, pop_pending_state
from .tokens import SessionTokenService
from .users import public_profile, user_stats

__all__ = [
    "FlowResult",
    "FlowState",
    "OAuthFlow",
    "OAuthProvider",
    "ProviderProfile",
    "SessionTokenService",
    "build_providers",
    "generate_state",
    "linked_providers",
    "pop_pending_state",
    "public_profile",
    "resolve_identity",
    "user_stats",
]
