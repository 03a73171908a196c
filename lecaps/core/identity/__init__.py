from lecaps.core.identity.identity_provider import IdentityProvider, LocalIdentityProvider, Session, User

__all__ = [
    "IdentityProvider",
    "LocalIdentityProvider",
    "Session",
    "User",
]
