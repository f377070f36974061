"""Identity providers gating access to the dashboard."""

from opsreport.security.identity import (
    AuthSession,
    IdentityProvider,
    LocalIdentityProvider,
    Subscription,
    hash_password,
    verify_password,
)

__all__ = [
    "AuthSession",
    "IdentityProvider",
    "LocalIdentityProvider",
    "Subscription",
    "hash_password",
    "verify_password",
]
