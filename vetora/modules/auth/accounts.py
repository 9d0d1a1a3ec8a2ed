"""
Account lifecycle: sign-up, sign-in (password, Google, Apple, wallet),
profile and settings changes, password management, deletion and export.

Every method either returns a result or raises AuthError with the status and
message the API should send.
"""

import logging
import re
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from .audit import AuditLog
from .errors import AuthError, user_not_found
from .passwords import PasswordHasher
from ..email import EmailService
from ..oauth import (
    AppleIdentityVerifier,
    GoogleTokenVerifier,
    OAuthErrorKind,
    OAuthVerificationError,
    WalletSignatureVerifier,
    is_wallet_address,
)
from ..users import (
    DuplicateUserError,
    SettingsValidationError,
    UserRecord,
    UserStore,
    resolve_setting_update,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$", re.ASCII)
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
MIN_PASSWORD_LENGTH = 6
RESET_TOKEN_TTL = timedelta(hours=24)
ONLINE_WINDOW = timedelta(minutes=5)
NOREPLY_DOMAIN = "users.noreply.vetora.local"
IMAGE_URL_PREFIXES = ("http://", "https://", "data:")

PROFILE_LIMITS = {
    "displayName": (50, "Display name cannot exceed 50 characters"),
    "bio": (500, "Bio cannot exceed 500 characters"),
    "location": (100, "Location cannot exceed 100 characters"),
    "website": (200, "Website URL cannot exceed 200 characters"),
}

GOOGLE_ERRORS = {
    OAuthErrorKind.MALFORMED: (400, "Invalid Google token"),
    OAuthErrorKind.INVALID_TOKEN: (401, "Invalid Google token (no data received)"),
    OAuthErrorKind.AUDIENCE_MISMATCH: (401, "Invalid Google token (audience mismatch)"),
    OAuthErrorKind.MISSING_SUBJECT: (400, "Invalid Google token payload"),
    OAuthErrorKind.PROVIDER_TIMEOUT: (504, "Google verification service timeout. Please try again."),
    OAuthErrorKind.PROVIDER_UNAVAILABLE: (502, "Failed to verify Google token. Please try again."),
    OAuthErrorKind.NOT_CONFIGURED: (503, "Google sign-in is not configured"),
}

APPLE_ERRORS = {
    OAuthErrorKind.MALFORMED: (400, "Invalid Apple token"),
    OAuthErrorKind.INVALID_TOKEN: (401, "Apple authentication failed"),
    OAuthErrorKind.AUDIENCE_MISMATCH: (401, "Invalid Apple token (iss/aud mismatch)"),
    OAuthErrorKind.EXPIRED: (401, "Apple token expired"),
    OAuthErrorKind.MISSING_SUBJECT: (400, "Invalid Apple token payload"),
    OAuthErrorKind.PROVIDER_TIMEOUT: (504, "Apple verification service timeout. Please try again."),
    OAuthErrorKind.PROVIDER_UNAVAILABLE: (502, "Failed to verify Apple token. Please try again."),
    OAuthErrorKind.NOT_CONFIGURED: (503, "Apple sign-in is not configured"),
}

WALLET_ERRORS = {
    OAuthErrorKind.MALFORMED: (401, "Invalid signature format"),
    OAuthErrorKind.INVALID_TOKEN: (401, "Invalid signature"),
}

RESET_EMAIL_TEMPLATE = """You are receiving this email because you (or someone else) have requested the reset of the password for your account.

Please click on the following link, or paste this into your browser to complete the process:

{link}

If you did not request this, please ignore this email and your password will remain unchanged.

This link will expire in 24 hours."""


def _provider_error(table: Dict, error: OAuthVerificationError, fallback: str) -> AuthError:
    status, message = table.get(error.kind, (401, fallback))
    return AuthError(status, message, details=error.detail)


def _valid_image_url(value: str) -> bool:
    return not value or value.startswith(IMAGE_URL_PREFIXES)


class AccountService:
    """User-facing account operations."""

    def __init__(
        self,
        users: UserStore,
        passwords: PasswordHasher,
        google: GoogleTokenVerifier,
        apple: AppleIdentityVerifier,
        wallet: WalletSignatureVerifier,
        email: EmailService,
        frontend_url: str,
        audit: Optional[AuditLog] = None,
    ):
        self.users = users
        self.passwords = passwords
        self.google = google
        self.apple = apple
        self.wallet = wallet
        self.email = email
        self.frontend_url = frontend_url.rstrip("/")
        self.audit = audit

    async def _audit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.audit:
            await self.audit.record(event_type, data)

    async def get_user(self, user_id: str) -> UserRecord:
        """Load a user or raise 404."""
        user = await self.users.get(user_id)
        if user is None:
            raise user_not_found()
        return user

    # Password sign-up / sign-in

    async def register(
        self,
        email: Optional[str],
        password: Optional[str],
        username: Optional[str],
        display_name: Optional[str],
    ) -> UserRecord:
        if not email or not password or not username or not display_name:
            raise AuthError(400, "All fields are required")
        if not EMAIL_PATTERN.match(email):
            raise AuthError(400, "Please enter a valid email address")
        if not USERNAME_PATTERN.match(username):
            raise AuthError(400, "Username can only contain letters, numbers, and underscores")
        if len(username) < 3 or len(username) > 30:
            raise AuthError(400, "Username must be between 3 and 30 characters")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(400, "Password must be at least 6 characters")
        if len(display_name) > 50:
            raise AuthError(400, "Display name cannot exceed 50 characters")

        email = email.lower()
        if await self.users.find_by_email(email) or await self.users.username_taken(username):
            raise AuthError(400, "User with this email or username already exists")

        user = UserRecord(
            id=self.users.new_id(),
            username=username,
            display_name=display_name,
            email=email,
            password_hash=await self.passwords.hash_async(password),
        )
        try:
            await self.users.create(user)
        except DuplicateUserError:
            raise AuthError(400, "User with this email or username already exists")

        await self._audit("user_registered", {"user": user.id})
        return user

    async def login(self, identifier: Optional[str], password: Optional[str]) -> UserRecord:
        """
        Password sign-in. An identifier containing "@" is an email, anything
        else a username (case-insensitive).
        """
        if not identifier or not password:
            raise AuthError(400, "Email and password are required")

        identifier = identifier.strip()
        if "@" in identifier:
            user = await self.users.find_by_email(identifier)
        else:
            user = await self.users.find_by_username(identifier)

        if user is None:
            logger.info(f"Login failed: no user for identifier {identifier}")
            raise AuthError(401, "Invalid email or password")

        if not await self.passwords.verify_async(password, user.password_hash):
            logger.info(f"Login failed for user {user.id}: invalid password")
            await self._audit("login_failed", {"user": user.id})
            raise AuthError(401, "Invalid email or password")

        if not user.is_active:
            raise AuthError(401, "Account is deactivated")

        user.last_login_at = datetime.now(UTC)
        await self.users.save(user)
        await self._audit("login", {"user": user.id, "method": "password"})
        return user

    # Social sign-in

    async def _upsert_social(
        self,
        provider: str,
        subject: str,
        email: str,
        username_base: str,
        display_name: Optional[str],
    ) -> UserRecord:
        if provider == "google":
            user = await self.users.find_by_google_id(subject)
        else:
            user = await self.users.find_by_apple_id(subject)
        if user is None and email:
            user = await self.users.find_by_email(email)

        if user is None:
            username = await self.users.unique_username(username_base)
            user = UserRecord(
                id=self.users.new_id(),
                username=username,
                display_name=display_name or username,
                email=email or f"{username}@{NOREPLY_DOMAIN}",
                password_hash=await self.passwords.hash_async(self.passwords.random_password()),
                is_verified=True,
            )
            setattr(user, f"{provider}_id", subject)
            await self.users.create(user)
            logger.info(f"Created user {user.id} from {provider} sign-in")
        elif getattr(user, f"{provider}_id") is None:
            setattr(user, f"{provider}_id", subject)
            if email and not user.email:
                user.email = email
            await self.users.save(user)
            logger.info(f"Linked {provider} identity to user {user.id}")

        if not user.is_active:
            raise AuthError(401, "Account is deactivated")

        user.last_login_at = datetime.now(UTC)
        await self.users.save(user)
        await self._audit("login", {"user": user.id, "method": provider})
        return user

    async def login_with_google(self, id_token: Optional[str]) -> UserRecord:
        if not id_token:
            raise AuthError(400, "Missing idToken")
        try:
            identity = await self.google.verify(id_token)
        except OAuthVerificationError as e:
            logger.warning(f"Google sign-in rejected: {e.kind.value}")
            raise _provider_error(GOOGLE_ERRORS, e, "Google authentication failed")

        subject = identity["sub"]
        return await self._upsert_social(
            "google",
            subject,
            identity["email"],
            identity["name"] or f"google_{subject[-6:]}",
            identity["name"],
        )

    async def login_with_apple(self, identity_token: Optional[str]) -> UserRecord:
        if not identity_token:
            raise AuthError(400, "Missing identityToken")
        try:
            identity = await self.apple.verify(identity_token)
        except OAuthVerificationError as e:
            logger.warning(f"Apple sign-in rejected: {e.kind.value}")
            raise _provider_error(APPLE_ERRORS, e, "Apple authentication failed")

        subject = identity["sub"]
        return await self._upsert_social(
            "apple",
            subject,
            identity["email"],
            identity["name"] or f"apple_{subject[-6:]}",
            None,
        )

    # Wallet

    def _verify_wallet(self, address: Optional[str], signature: Optional[str], message: Optional[str]) -> None:
        if not address or not signature or not message:
            raise AuthError(400, "Wallet address, signature, and message are required")
        try:
            self.wallet.verify(address, message, signature)
        except OAuthVerificationError as e:
            raise _provider_error(WALLET_ERRORS, e, "Invalid signature")

    async def login_with_wallet(
        self, address: Optional[str], signature: Optional[str], message: Optional[str]
    ) -> UserRecord:
        self._verify_wallet(address, signature, message)

        user = await self.users.find_by_wallet(address)
        if user is None:
            suffix = address[-6:]
            username = await self.users.unique_username(f"user_{suffix}")
            user = UserRecord(
                id=self.users.new_id(),
                username=username,
                display_name=f"User {suffix}",
                wallet_address=address,
                is_verified=True,
            )
            await self.users.create(user)
            logger.info(f"Created user {user.id} from wallet sign-in")

        if not user.is_active:
            raise AuthError(401, "Account is deactivated")

        user.last_login_at = datetime.now(UTC)
        await self.users.save(user)
        await self._audit("login", {"user": user.id, "method": "wallet"})
        return user

    async def link_wallet(
        self,
        user: UserRecord,
        address: Optional[str],
        signature: Optional[str],
        message: Optional[str],
    ) -> UserRecord:
        if not address or not signature or not message:
            raise AuthError(400, "Wallet address, signature, and message are required")
        if not is_wallet_address(address):
            raise AuthError(400, "Invalid wallet address format")

        owner = await self.users.find_by_wallet(address)
        if owner is not None and owner.id != user.id:
            raise AuthError(400, "This wallet address is already associated with another account")

        self._verify_wallet(address, signature, message)

        user.wallet_address = address
        await self.users.save(user)
        await self._audit("wallet_linked", {"user": user.id})
        return user

    async def unlink_wallet(self, user: UserRecord) -> UserRecord:
        if not user.wallet_address:
            raise AuthError(400, "No wallet address associated with this account")
        user.wallet_address = None
        await self.users.save(user)
        await self._audit("wallet_unlinked", {"user": user.id})
        return user

    # Profile and settings

    async def update_profile(self, user: UserRecord, changes: Dict[str, Any]) -> UserRecord:
        """
        Apply the supplied profile fields; fields absent from changes are untouched.

        Accepted keys: displayName, username, bio, location, website, avatar, cover.
        """
        username = changes.get("username")
        if username is not None and username != user.username:
            if not USERNAME_PATTERN.match(username):
                raise AuthError(400, "Username can only contain letters, numbers, and underscores")
            if len(username) < 3 or len(username) > 30:
                raise AuthError(400, "Username must be between 3 and 30 characters")
            if await self.users.username_taken(username, exclude_id=user.id):
                raise AuthError(400, "Username is already taken")

        for key, (limit, message) in PROFILE_LIMITS.items():
            value = changes.get(key)
            if value is not None and len(value) > limit:
                raise AuthError(400, message)

        for key, label, hint in (
            ("avatar", "avatar", "Please upload a valid profile picture"),
            ("cover", "cover", "Please upload a valid cover image"),
        ):
            value = changes.get(key)
            if value is not None and not _valid_image_url(value):
                raise AuthError(400, f"Invalid {label} URL format", extra={"details": hint})

        if changes.get("displayName") is not None:
            user.display_name = changes["displayName"]
        if username is not None:
            user.username = username
        for key in ("bio", "location", "website", "avatar", "cover"):
            if changes.get(key) is not None:
                setattr(user, key, changes[key])

        try:
            await self.users.save(user)
        except DuplicateUserError:
            raise AuthError(400, "Username is already taken")
        return user

    async def remove_cover(self, user: UserRecord) -> UserRecord:
        user.cover = ""
        await self.users.save(user)
        return user

    async def update_settings(self, user: UserRecord, body: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Validate and store one settings category.

        Returns:
            Tuple of (setting type, the user's full settings after the update)
        """
        setting_type, values = self.validate_settings(body)
        updated = user.settings.model_dump(by_alias=True)
        updated[setting_type] = values
        user.settings = type(user.settings).model_validate(updated)
        await self.users.save(user)
        return setting_type, user.settings.model_dump(mode="json", by_alias=True)

    @staticmethod
    def validate_settings(body: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        try:
            return resolve_setting_update(body)
        except SettingsValidationError as e:
            extra = {"errors": e.errors} if e.errors else None
            raise AuthError(400, e.message, extra=extra)

    # Password and account

    async def change_password(
        self, user: UserRecord, current_password: Optional[str], new_password: Optional[str]
    ) -> None:
        if not current_password or not new_password:
            raise AuthError(400, "Current password and new password are required")
        if not await self.passwords.verify_async(current_password, user.password_hash):
            raise AuthError(400, "Current password is incorrect")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise AuthError(400, "New password must be at least 6 characters long")

        user.password_hash = await self.passwords.hash_async(new_password)
        await self.users.save(user)
        await self._audit("password_changed", {"user": user.id})

    async def delete_account(self, user: UserRecord, password: Optional[str]) -> None:
        """Soft delete: deactivate and free up the email and username."""
        if not password:
            raise AuthError(400, "Password is required to delete account")
        if not await self.passwords.verify_async(password, user.password_hash):
            raise AuthError(400, "Password is incorrect")

        now = datetime.now(UTC)
        stamp = int(now.timestamp() * 1000)
        user.is_active = False
        user.deleted_at = now
        if user.email:
            user.email = f"deleted_{stamp}_{user.email}"
        user.username = f"deleted_{stamp}_{user.username}"
        await self.users.save(user)
        logger.info(f"Account {user.id} deleted")
        await self._audit("account_deleted", {"user": user.id})

    @staticmethod
    def export(user: UserRecord) -> Dict[str, Any]:
        public = user.to_public()
        return {
            "profile": {
                key: public.get(key)
                for key in (
                    "username",
                    "displayName",
                    "email",
                    "bio",
                    "location",
                    "website",
                    "isVerified",
                    "createdAt",
                    "updatedAt",
                )
            },
            "settings": public["settings"],
            "socialLinks": public["socialLinks"],
            "exportedAt": datetime.now(UTC).isoformat(),
            "exportVersion": "1.0",
        }

    # Password reset

    async def request_password_reset(self, email: Optional[str]) -> bool:
        """
        Start a password reset.

        Returns:
            True if a reset was issued, False when no such account exists.
            Callers answer both cases with success to avoid email enumeration.
        """
        if not email:
            raise AuthError(400, "Email is required")
        if not EMAIL_PATTERN.match(email):
            raise AuthError(400, "Please enter a valid email address")

        user = await self.users.find_by_email(email)
        if user is None:
            return False

        user.reset_password_token = secrets.token_hex(32)
        user.reset_password_expiry = datetime.now(UTC) + RESET_TOKEN_TTL
        await self.users.save(user)

        link = f"{self.frontend_url}/auth/reset-password?token={user.reset_password_token}"
        try:
            await self.email.send_email(
                to=user.email,
                subject="Vetora Password Reset Request",
                message=RESET_EMAIL_TEMPLATE.format(link=link),
            )
        except Exception as e:
            # The token is stored; the user can ask again
            logger.error(f"Failed to send reset email to user {user.id}: {e}")
        await self._audit("password_reset_requested", {"user": user.id})
        return True

    async def _user_for_reset_token(self, token: Optional[str]) -> UserRecord:
        user = await self.users.find_by_reset_token(token) if token else None
        if (
            user is None
            or user.reset_password_expiry is None
            or user.reset_password_expiry <= datetime.now(UTC)
        ):
            raise AuthError(400, "Invalid or expired reset token")
        return user

    async def validate_reset_token(self, token: Optional[str]) -> None:
        if not token:
            raise AuthError(400, "Reset token is required")
        await self._user_for_reset_token(token)

    async def reset_password(self, token: Optional[str], new_password: Optional[str]) -> None:
        if not token or not new_password:
            raise AuthError(400, "Reset token and new password are required")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise AuthError(400, "Password must be at least 6 characters")

        user = await self._user_for_reset_token(token)
        user.password_hash = await self.passwords.hash_async(new_password)
        user.reset_password_token = None
        user.reset_password_expiry = None
        await self.users.save(user)
        await self._audit("password_reset", {"user": user.id})

    # Current user

    @staticmethod
    def describe_me(user: UserRecord, role: str) -> Dict[str, Any]:
        """The signed-in user's own view of their account."""
        public = user.to_public()
        online = bool(
            user.last_seen_at and datetime.now(UTC) - user.last_seen_at < ONLINE_WINDOW
        )
        return {
            "id": user.id,
            "username": user.username,
            "displayName": user.display_name or user.username,
            "email": user.email,
            "avatar": user.avatar,
            "bio": user.bio,
            "location": user.location,
            "website": user.website,
            "isVerified": user.is_verified,
            "followerCount": user.follower_count,
            "followingCount": user.following_count,
            "postCount": user.post_count,
            "createdAt": public["createdAt"],
            "updatedAt": public["updatedAt"],
            "walletAddress": user.wallet_address,
            "socialLinks": public["socialLinks"],
            "settings": public["settings"],
            "lastSeen": public["lastSeenAt"],
            "isOnline": online,
            "role": role,
        }
