"""Ethereum wallet sign-in: EIP-191 personal_sign signature recovery."""
import logging
import re

from eth_account import Account
from eth_account.messages import encode_defunct

from .errors import OAuthErrorKind, OAuthVerificationError

logger = logging.getLogger(__name__)

WALLET_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_wallet_address(value: str) -> bool:
    return bool(value) and bool(WALLET_ADDRESS_PATTERN.match(value))


class WalletSignatureVerifier:
    """Checks that a message was signed by the claimed address."""

    def recover(self, message: str, signature: str) -> str:
        return Account.recover_message(encode_defunct(text=message), signature=signature)

    def verify(self, address: str, message: str, signature: str) -> None:
        """
        Raises:
            OAuthVerificationError: MALFORMED when the signature cannot be
                parsed, INVALID_TOKEN when it was made by another key
        """
        try:
            recovered = self.recover(message, signature)
        except Exception as e:
            logger.info(f"Unparseable wallet signature: {e}")
            raise OAuthVerificationError(OAuthErrorKind.MALFORMED, str(e))

        if recovered.lower() != address.lower():
            logger.info(f"Wallet signature mismatch for {address}")
            raise OAuthVerificationError(OAuthErrorKind.INVALID_TOKEN, "signer mismatch")
