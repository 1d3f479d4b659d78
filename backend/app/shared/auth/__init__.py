"""
Authentication helpers backed by the external identity provider.
"""

from .identity import CurrentUser, IdentityProvider, get_current_user, require_user

__all__ = [
    "CurrentUser",
    "IdentityProvider",
    "get_current_user",
    "require_user",
]
