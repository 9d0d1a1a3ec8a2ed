"""
OAuth Module - Black Box Interface

Purpose: Verify third-party identities (Google, Apple, Ethereum wallets)
Interface: GoogleTokenVerifier, AppleIdentityVerifier, WalletSignatureVerifier
Hidden: Provider endpoints, JWKS caching, signature recovery

Verifiers only answer "who is this?"; creating or linking Vetora accounts is
done by the auth module.
"""

from .apple import AppleIdentityVerifier
from .errors import OAuthErrorKind, OAuthVerificationError
from .google import GoogleTokenVerifier
from .wallet import WalletSignatureVerifier, is_wallet_address

__all__ = [
    "AppleIdentityVerifier",
    "GoogleTokenVerifier",
    "OAuthErrorKind",
    "OAuthVerificationError",
    "WalletSignatureVerifier",
    "is_wallet_address",
]
