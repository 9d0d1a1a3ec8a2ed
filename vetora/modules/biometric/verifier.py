"""
WebAuthn wrapper around py_webauthn.

Builds ceremony options and runs verification in a worker thread under a
timeout. Every verification failure surfaces as WebAuthnVerificationError
carrying a VerificationErrorKind, so callers pick messages by kind.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.cose import COSEAlgorithmIdentifier
from webauthn.helpers.exceptions import (
    InvalidAuthenticationResponse,
    InvalidCBORData,
    InvalidJSONStructure,
    InvalidRegistrationResponse,
)
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorAttachment,
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from ...config.provider import WebAuthnConfig

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = [
    COSEAlgorithmIdentifier.ECDSA_SHA_256,
    COSEAlgorithmIdentifier.EDDSA,
    COSEAlgorithmIdentifier.ECDSA_SHA_512,
    COSEAlgorithmIdentifier.RSASSA_PKCS1_v1_5_SHA_256,
    COSEAlgorithmIdentifier.RSASSA_PKCS1_v1_5_SHA_384,
    COSEAlgorithmIdentifier.RSASSA_PKCS1_v1_5_SHA_512,
]

# py_webauthn reports snake_case device types; stored values are camelCase
DEVICE_TYPES = {
    "single_device": "singleDevice",
    "multi_device": "multiDevice",
}


class VerificationErrorKind(str, Enum):
    """Why a WebAuthn verification did not succeed."""

    MALFORMED = "malformed"
    REJECTED = "rejected"
    TIMEOUT = "timeout"


class WebAuthnVerificationError(Exception):
    """Raised by WebAuthnVerifier when a ceremony response is not accepted."""

    def __init__(self, kind: VerificationErrorKind, detail: str = ""):
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail


@dataclass
class RegistrationResult:
    """What gets stored after a successful registration ceremony."""
    credential_id: str
    public_key: str
    sign_count: int
    device_type: str
    backed_up: bool


def _transports(values: Optional[List[str]]) -> Optional[List[AuthenticatorTransport]]:
    if not values:
        return None
    known = []
    for value in values:
        try:
            known.append(AuthenticatorTransport(value))
        except ValueError:
            logger.debug(f"Ignoring unknown authenticator transport: {value}")
    return known or None


def _descriptor(credential_id: str, transports: Optional[List[str]]) -> PublicKeyCredentialDescriptor:
    return PublicKeyCredentialDescriptor(
        id=base64url_to_bytes(credential_id),
        transports=_transports(transports),
    )


class WebAuthnVerifier:
    """Ceremony option builder and verifier for one relying party."""

    def __init__(self, config: WebAuthnConfig):
        self.config = config

    def registration_options(
        self,
        user_id: str,
        user_name: str,
        display_name: str,
        exclude: Optional[List[Tuple[str, List[str]]]] = None,
    ) -> Tuple[Dict[str, Any], str]:
        """
        Build PublicKeyCredentialCreationOptions.

        Returns:
            Tuple of (options as JSON-ready dict, base64url challenge)
        """
        options = generate_registration_options(
            rp_id=self.config.rp_id,
            rp_name=self.config.rp_name,
            user_id=user_id.encode("utf-8"),
            user_name=user_name,
            user_display_name=display_name,
            timeout=self.config.timeout_ms,
            attestation=AttestationConveyancePreference(self.config.attestation),
            authenticator_selection=AuthenticatorSelectionCriteria(
                authenticator_attachment=AuthenticatorAttachment.PLATFORM,
                resident_key=ResidentKeyRequirement.PREFERRED,
                require_resident_key=False,
                user_verification=UserVerificationRequirement(self.config.user_verification),
            ),
            exclude_credentials=[_descriptor(cid, t) for cid, t in (exclude or [])],
            supported_pub_key_algs=SUPPORTED_ALGORITHMS,
        )
        return json.loads(options_to_json(options)), bytes_to_base64url(options.challenge)

    def authentication_options(
        self,
        allow: Optional[List[Tuple[str, List[str]]]] = None,
    ) -> Tuple[Dict[str, Any], str]:
        """
        Build PublicKeyCredentialRequestOptions.

        Returns:
            Tuple of (options as JSON-ready dict, base64url challenge)
        """
        options = generate_authentication_options(
            rp_id=self.config.rp_id,
            timeout=self.config.auth_timeout_ms,
            allow_credentials=[_descriptor(cid, t) for cid, t in (allow or [])],
            user_verification=UserVerificationRequirement(self.config.user_verification),
        )
        return json.loads(options_to_json(options)), bytes_to_base64url(options.challenge)

    async def _run(self, func, *args, **kwargs):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self.config.verify_timeout,
            )
        except asyncio.TimeoutError:
            raise WebAuthnVerificationError(VerificationErrorKind.TIMEOUT, "verification timed out")
        except (InvalidRegistrationResponse, InvalidAuthenticationResponse) as e:
            raise WebAuthnVerificationError(VerificationErrorKind.REJECTED, str(e))
        except (InvalidJSONStructure, InvalidCBORData, KeyError, TypeError, ValueError) as e:
            raise WebAuthnVerificationError(VerificationErrorKind.MALFORMED, str(e))

    async def verify_registration(
        self, response: Dict[str, Any], expected_challenge: str
    ) -> RegistrationResult:
        """
        Verify an attestation response against the challenge we issued.

        Raises:
            WebAuthnVerificationError: On any verification failure
        """
        verification = await self._run(
            verify_registration_response,
            credential=response,
            expected_challenge=base64url_to_bytes(expected_challenge),
            expected_rp_id=self.config.rp_id,
            expected_origin=self.config.origin,
            require_user_verification=False,
        )
        device_type = getattr(verification.credential_device_type, "value", verification.credential_device_type)
        return RegistrationResult(
            credential_id=bytes_to_base64url(verification.credential_id),
            public_key=bytes_to_base64url(verification.credential_public_key),
            sign_count=verification.sign_count,
            device_type=DEVICE_TYPES.get(device_type, "multiDevice"),
            backed_up=bool(verification.credential_backed_up),
        )

    async def verify_authentication(
        self,
        response: Dict[str, Any],
        expected_challenge: str,
        public_key: str,
        sign_count: int,
    ) -> int:
        """
        Verify an assertion against a stored credential.

        Returns:
            The authenticator's new signature counter

        Raises:
            WebAuthnVerificationError: On any verification failure
        """
        verification = await self._run(
            verify_authentication_response,
            credential=response,
            expected_challenge=base64url_to_bytes(expected_challenge),
            expected_rp_id=self.config.rp_id,
            expected_origin=self.config.origin,
            credential_public_key=base64url_to_bytes(public_key),
            credential_current_sign_count=sign_count,
            require_user_verification=False,
        )
        return verification.new_sign_count
