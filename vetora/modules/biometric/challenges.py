"""
Biometric challenge manager.

Owns the WebAuthn challenge lifecycle of every user:

    NoCredential -> ChallengeIssued -> Verified | Expired | Rejected

Registration challenges live on the user document (one at a time).
Authentication challenges live on the target user's credential record, or,
for passwordless sign-in where the user is not known yet, under a pending key
with a TTL. A challenge id verifies at most once: a successful verification claims a
marker key with SET NX, and a failed one leaves the challenge open for a retry.
"""

import ipaddress
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, Optional

from .verifier import VerificationErrorKind, WebAuthnVerificationError, WebAuthnVerifier
from ..auth.audit import AuditLog
from ..auth.errors import AuthError
from ..users import AuthChallenge, BiometricCredentials, RecentDevice, UserRecord, UserStore
from ...config.provider import WebAuthnConfig

logger = logging.getLogger(__name__)

REGISTRATION_ERRORS = {
    VerificationErrorKind.MALFORMED: "Invalid biometric registration data",
    VerificationErrorKind.REJECTED: "Biometric registration verification failed",
    VerificationErrorKind.TIMEOUT: "Biometric registration timed out. Please try again.",
}

AUTHENTICATION_ERRORS = {
    VerificationErrorKind.MALFORMED: "Biometric authentication verification failed",
    VerificationErrorKind.REJECTED: "Biometric authentication verification failed",
    VerificationErrorKind.TIMEOUT: "Biometric authentication timed out. Please try again.",
}

DEFAULT_TRANSPORTS = ["internal"]
LOOKUP_TRANSPORTS = ["internal", "hybrid"]


@dataclass
class DeviceInfo:
    """Where an authentication request came from."""
    user_agent: str = "Unknown"
    ip_address: Optional[str] = None


def _safe_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return None
    return value


class BiometricChallengeManager:
    """Issues and consumes WebAuthn challenges for registration and sign-in."""

    def __init__(
        self,
        users: UserStore,
        verifier: WebAuthnVerifier,
        redis_client,
        config: WebAuthnConfig,
        audit: Optional[AuditLog] = None,
    ):
        self.users = users
        self.verifier = verifier
        self.redis = redis_client
        self.config = config
        self.audit = audit

    @staticmethod
    def _pending_key(challenge_id: str) -> str:
        return f"biometric:pending:{challenge_id}"

    @staticmethod
    def _used_key(challenge_ref: str) -> str:
        return f"biometric:used:{challenge_ref}"

    async def _claim(self, challenge_ref: str, ttl_ms: int) -> bool:
        """Atomically mark a challenge as consumed; False if it already was."""
        ttl = max(1, ttl_ms // 1000)
        return bool(await self.redis.set(self._used_key(challenge_ref), "1", nx=True, ex=ttl))

    async def _audit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.audit:
            await self.audit.record(event_type, data)

    # Registration

    async def generate_registration_options(self, user: UserRecord) -> Dict[str, Any]:
        """
        Issue a registration challenge for a user without a credential.

        Raises:
            AuthError: 400 if the user already has a registered credential
        """
        if user.has_biometric:
            raise AuthError(
                400,
                "Biometric credentials already registered for this user. "
                "Remove existing credentials first.",
            )

        options, challenge = self.verifier.registration_options(
            user_id=user.id,
            user_name=user.email or user.username,
            display_name=user.display_name or user.username,
        )

        creds = user.biometric_credentials or BiometricCredentials()
        creds.challenge_id = str(uuid.uuid4())
        creds.challenge = challenge
        creds.challenge_expiry = datetime.now(UTC) + timedelta(milliseconds=self.config.timeout_ms)
        user.biometric_credentials = creds
        await self.users.save(user)

        logger.info(f"Issued biometric registration challenge for user {user.id}")
        return {
            "challengeId": creds.challenge_id,
            "options": options,
            "timeout": options.get("timeout", self.config.timeout_ms),
        }

    async def register(
        self,
        user: UserRecord,
        registration_response: Optional[Dict[str, Any]],
        challenge_id: Optional[str],
    ) -> Dict[str, Any]:
        """
        Verify a registration response and store the new credential.

        Raises:
            AuthError: 400 for missing input, bad or expired challenge,
                an existing credential, or a failed verification
        """
        if not registration_response:
            raise AuthError(400, "Registration response is required")
        if not challenge_id:
            raise AuthError(400, "Challenge ID is required")

        creds = user.biometric_credentials
        now = datetime.now(UTC)
        if (
            creds is None
            or creds.challenge_id != challenge_id
            or creds.challenge_expiry is None
            or now > creds.challenge_expiry
        ):
            raise AuthError(400, "Invalid or expired challenge")

        if creds.is_registered:
            raise AuthError(400, "Biometric credentials already registered for this user")

        if not creds.challenge:
            raise AuthError(400, "Missing challenge data. Please generate new registration options.")

        try:
            result = await self.verifier.verify_registration(registration_response, creds.challenge)
        except WebAuthnVerificationError as e:
            logger.warning(f"Biometric registration failed for user {user.id}: {e.kind.value} {e.detail}")
            await self._audit("biometric_registration_failed", {"user": user.id, "kind": e.kind.value})
            raise AuthError(400, REGISTRATION_ERRORS[e.kind], details=e.detail)

        if not await self._claim(challenge_id, self.config.timeout_ms):
            raise AuthError(400, "Invalid or expired challenge")

        if not result.credential_id or not result.public_key:
            raise AuthError(400, "Invalid credential data received")

        client_transports = (registration_response.get("response") or {}).get("transports")
        user.biometric_credentials = BiometricCredentials(
            credential_id=result.credential_id,
            public_key=result.public_key,
            counter=result.sign_count or 0,
            transports=client_transports or DEFAULT_TRANSPORTS,
            algorithm="public-key",
            device_type=result.device_type,
            backed_up=result.backed_up,
            registered_at=now,
        )
        await self.users.save(user)

        logger.info(f"Biometric credentials registered for user {user.id}")
        await self._audit("biometric_registered", {"user": user.id, "deviceType": result.device_type})
        return {
            "deviceType": result.device_type,
            "backedUp": result.backed_up,
            "registeredAt": now.isoformat(),
        }

    # Authentication

    async def generate_authentication_options(
        self,
        user_email: Optional[str] = None,
        credential_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Issue an authentication challenge.

        With a known user (by email, or by credential id) the challenge is
        bound to that user's credential. Otherwise it is a pending challenge
        usable by any resident credential.
        """
        target: Optional[UserRecord] = None
        if user_email and user_email != "anonymous":
            target = await self.users.find_by_email(user_email)
        elif credential_id:
            target = await self.users.find_by_credential_id(credential_id)

        allow = []
        if target is not None and target.has_biometric:
            creds = target.biometric_credentials
            allow.append((creds.credential_id, creds.transports or LOOKUP_TRANSPORTS))

        options, challenge = self.verifier.authentication_options(allow)
        challenge_id = str(uuid.uuid4())
        now = datetime.now(UTC)
        expiry = now + timedelta(milliseconds=self.config.auth_timeout_ms)

        if allow:
            creds = target.biometric_credentials
            outstanding = [c for c in creds.auth_challenges if not c.is_expired(now)]
            outstanding.append(
                AuthChallenge(id=challenge_id, challenge=challenge, expiry=expiry, created_at=now)
            )
            creds.auth_challenges = outstanding[-self.config.max_auth_challenges:]
            await self.users.save(target)
        else:
            record = {"challenge": challenge, "expiry": expiry.isoformat()}
            ttl = max(1, self.config.auth_timeout_ms // 1000)
            await self.redis.setex(self._pending_key(challenge_id), ttl, json.dumps(record))

        return {
            "challengeId": challenge_id,
            "allowsResidentCredentials": not allow,
            "options": options,
            "timeout": options.get("timeout", self.config.auth_timeout_ms),
        }

    async def _expected_challenge(self, creds: BiometricCredentials, challenge_id: Optional[str]):
        """
        Find the challenge an assertion must answer.

        Returns:
            Tuple of (challenge, source) where source is "user", "pending" or "legacy"
        """
        now = datetime.now(UTC)
        if challenge_id:
            for entry in creds.auth_challenges:
                if entry.id == challenge_id and not entry.is_expired(now):
                    return entry.challenge, "user"
            raw = await self.redis.get(self._pending_key(challenge_id))
            if raw:
                record = json.loads(raw)
                if datetime.fromisoformat(record["expiry"]) > now:
                    return record["challenge"], "pending"
            raise AuthError(400, "Invalid or expired authentication challenge")

        if creds.challenge and creds.challenge_expiry and creds.challenge_expiry > now:
            return creds.challenge, "legacy"
        raise AuthError(400, "Missing authentication challenge. Please generate new authentication options.")

    async def authenticate(
        self,
        authentication_response: Optional[Dict[str, Any]],
        challenge_id: Optional[str],
        device: Optional[DeviceInfo] = None,
    ) -> UserRecord:
        """
        Verify an assertion and return the signed-in user.

        Raises:
            AuthError: 400 for missing input or challenge, 401 for unknown
                credentials, inactive accounts or failed verification
        """
        if not authentication_response or not authentication_response.get("id"):
            raise AuthError(400, "Authentication response is required")

        credential_id = authentication_response["id"]
        user = await self.users.find_by_credential_id(credential_id)
        if user is None or not user.has_biometric:
            logger.warning(f"Biometric authentication attempt with unknown credential {credential_id[:16]}")
            await self._audit("biometric_unknown_credential", {"credentialId": credential_id[:64]})
            raise AuthError(401, "Invalid biometric credentials")

        if not user.is_active:
            raise AuthError(401, "Account is deactivated")

        creds = user.biometric_credentials
        expected, source = await self._expected_challenge(creds, challenge_id)

        try:
            new_count = await self.verifier.verify_authentication(
                authentication_response, expected, creds.public_key, creds.counter
            )
        except WebAuthnVerificationError as e:
            logger.warning(f"Biometric verification failed for user {user.id}: {e.kind.value} {e.detail}")
            await self._audit("biometric_authentication_failed", {"user": user.id, "kind": e.kind.value})
            raise AuthError(401, AUTHENTICATION_ERRORS[e.kind], details=e.detail)

        if not await self._claim(challenge_id or expected, self.config.timeout_ms):
            raise AuthError(400, "Invalid or expired authentication challenge")

        now = datetime.now(UTC)
        creds.counter = new_count
        creds.last_used_at = now
        if source == "user":
            creds.auth_challenges = [c for c in creds.auth_challenges if c.id != challenge_id]
        elif source == "pending":
            await self.redis.delete(self._pending_key(challenge_id))
        else:
            creds.clear_registration_challenge()

        user.last_login_at = now
        user.last_seen_at = now
        self._record_device(user, device or DeviceInfo(), now)
        await self.users.save(user)

        logger.info(f"Successful biometric authentication for user {user.id}")
        await self._audit("biometric_authenticated", {"user": user.id})
        return user

    def _record_device(self, user: UserRecord, device: DeviceInfo, now: datetime) -> None:
        devices = user.settings.security.recent_devices
        ip = _safe_ip(device.ip_address)
        for existing in devices:
            if existing.user_agent == device.user_agent:
                existing.last_login = now
                existing.ip_address = ip
                return
        devices.insert(
            0,
            RecentDevice(
                device_name="Biometric Device",
                last_login=now,
                ip_address=ip,
                user_agent=device.user_agent,
            ),
        )
        del devices[self.config.max_recent_devices:]

    # Management

    async def remove(self, user: UserRecord) -> None:
        """
        Drop the user's credential and any challenge state.

        Raises:
            AuthError: 400 if there is nothing to remove
        """
        if not user.has_biometric:
            raise AuthError(400, "No biometric credentials found for this user")
        user.biometric_credentials = BiometricCredentials()
        await self.users.save(user)
        logger.info(f"Biometric credentials removed for user {user.id}")
        await self._audit("biometric_removed", {"user": user.id})

    @staticmethod
    def status(user: UserRecord) -> Dict[str, Any]:
        if not user.has_biometric:
            return {
                "registered": False,
                "deviceType": None,
                "registeredAt": None,
                "lastUsedAt": None,
                "backedUp": None,
            }
        creds = user.biometric_credentials
        return {
            "registered": True,
            "deviceType": creds.device_type,
            "registeredAt": creds.registered_at.isoformat() if creds.registered_at else None,
            "lastUsedAt": creds.last_used_at.isoformat() if creds.last_used_at else None,
            "backedUp": creds.backed_up,
        }
