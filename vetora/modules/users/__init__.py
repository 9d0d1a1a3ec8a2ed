"""
Users Module - Black Box Interface

Purpose: User account persistence and vendor store lookup
Interface: UserStore, UserRecord, VendorStoreRegistry, settings schemas
Hidden: Redis key layout, secondary index maintenance
"""

from .models import AuthChallenge, BiometricCredentials, UserRecord, UserRole
from .settings import (
    ANONYMOUS_SETTINGS,
    RecentDevice,
    SettingsValidationError,
    UserSettings,
    resolve_setting_update,
)
from .store import DuplicateUserError, UserStore
from .vendors import VendorStoreRegistry

__all__ = [
    "ANONYMOUS_SETTINGS",
    "AuthChallenge",
    "BiometricCredentials",
    "DuplicateUserError",
    "RecentDevice",
    "SettingsValidationError",
    "UserRecord",
    "UserRole",
    "UserSettings",
    "UserStore",
    "VendorStoreRegistry",
    "resolve_setting_update",
]
