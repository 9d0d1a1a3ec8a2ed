"""
Authentication Module - Black Box Interface

Purpose: Issue and verify Vetora tokens, hash passwords, resolve roles
Interface: TokenIssuer, PasswordHasher, VendorRoleSync, AccountService, AuthError
Hidden: Signing secrets, refresh token storage, role cache layout

The composition root (factory.AuthFactory) wires these together with the
biometric and OAuth modules.
"""

from .errors import AuthError
from .passwords import PasswordHasher
from .tokens import InMemoryRefreshTokenStore, RedisRefreshTokenStore, TokenIssuer

__all__ = [
    "AuthError",
    "InMemoryRefreshTokenStore",
    "PasswordHasher",
    "RedisRefreshTokenStore",
    "TokenIssuer",
]
