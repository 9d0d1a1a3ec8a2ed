"""
User settings schemas.

Every settings category is a pydantic model with defaults. Unknown keys are
dropped on validation, missing keys take their default, so a validated
category can replace the stored one wholesale.
"""

import ipaddress
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

Visibility = Literal["public", "followers", "private"]

HHMM_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"


class SettingsModel(BaseModel):
    """Base for settings categories: camelCase on the wire, unknown keys stripped."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class PrivacySettings(SettingsModel):
    # Profile
    profile_visibility: Visibility = "followers"
    activity_visibility: Visibility = "followers"
    profile_public: bool = False
    show_wallet: bool = False
    show_activity: bool = False
    show_online_status: bool = False
    show_last_seen: bool = False
    # Communication
    allow_tagging: bool = True
    allow_direct_messages: bool = True
    allow_group_invites: bool = True
    allow_mentions: bool = True
    message_requests_from_followers: bool = True
    # Data
    data_sharing: Literal["minimal", "standard", "enhanced"] = "minimal"
    analytics_opt_out: bool = False
    personalized_ads: bool = False
    location_tracking: bool = False
    activity_tracking: bool = False
    # Search and discovery
    searchable_by_email: bool = False
    searchable_by_phone: bool = False
    suggest_to_contacts: bool = False
    show_in_directory: bool = False
    # Content
    downloadable_content: bool = False
    content_indexing: bool = False
    share_analytics: bool = False


class NotificationSettings(SettingsModel):
    email: bool = True
    push: bool = True
    in_app: bool = True
    sms: bool = False
    mentions: bool = True
    follows: bool = True
    likes: bool = False
    comments: bool = True
    shares: bool = False
    direct_messages: bool = True
    group_messages: bool = True
    social: bool = True
    marketplace: bool = False
    dao: bool = True
    wallet: bool = True
    security: bool = True
    frequency: Literal["immediate", "hourly", "daily", "weekly", "never"] = "immediate"
    quiet_hours: bool = False
    quiet_start: str = Field(default="22:00", pattern=HHMM_PATTERN)
    quiet_end: str = Field(default="08:00", pattern=HHMM_PATTERN)


class MediaSettings(SettingsModel):
    auto_play_videos: Literal["always", "wifi-only", "never"] = "wifi-only"
    auto_play_gifs: bool = True
    auto_load_images: bool = True
    high_quality_uploads: bool = False
    compress_images: bool = True
    show_image_previews: bool = True
    enable_video_controls: bool = True


class SoundSettings(SettingsModel):
    master_volume: Literal["muted", "low", "medium", "high"] = "medium"
    notification_sounds: bool = True
    message_sounds: bool = True
    ui_sounds: bool = False
    keyboard_sounds: bool = False
    custom_sound_pack: str = "default"


class KeyboardSettings(SettingsModel):
    shortcuts_enabled: bool = True
    custom_shortcuts: Dict[str, str] = Field(default_factory=dict)
    vim_mode: bool = False
    quick_actions: bool = True


class UISettings(SettingsModel):
    compact_mode: bool = False
    show_avatars: bool = True
    show_timestamps: bool = True
    show_read_receipts: bool = True
    show_typing_indicators: bool = True
    show_online_status: bool = True
    animated_emojis: bool = True
    sticky_header: bool = True
    infinite_scroll: bool = True
    auto_refresh: bool = True
    refresh_interval: int = Field(default=30, ge=5, le=300)


class InteractionSettings(SettingsModel):
    media: MediaSettings = Field(default_factory=MediaSettings)
    sound: SoundSettings = Field(default_factory=SoundSettings)
    keyboard: KeyboardSettings = Field(default_factory=KeyboardSettings)
    ui: UISettings = Field(default_factory=UISettings)


class ThemeSettings(SettingsModel):
    theme: Literal["light", "dark", "system"] = "system"
    reduced_motion: bool = False
    high_contrast: bool = False
    font_size: Literal["small", "medium", "large", "extra-large"] = "medium"
    language: Literal["en", "es", "fr", "de", "it", "pt", "zh", "ja", "ko", "ar"] = "en"


class WalletSettings(SettingsModel):
    show_balance: bool = True
    auto_connect: bool = True
    default_network: Literal["ethereum", "polygon", "bsc", "arbitrum"] = "ethereum"
    gas_preference: Literal["slow", "standard", "fast"] = "standard"


class RecentDevice(SettingsModel):
    """A device that recently signed in."""

    device_name: Optional[str] = None
    last_login: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @field_validator("ip_address")
    @classmethod
    def validate_ip(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        ipaddress.ip_address(v)
        return v


class SecuritySettings(SettingsModel):
    two_factor_enabled: bool = False
    login_notifications: bool = True
    session_timeout: int = Field(default=30, ge=5, le=1440)  # minutes
    recent_devices: List[RecentDevice] = Field(default_factory=list)


class UserSettings(SettingsModel):
    """All settings categories of a user."""

    privacy: PrivacySettings = Field(default_factory=PrivacySettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    interaction: InteractionSettings = Field(default_factory=InteractionSettings)
    theme: ThemeSettings = Field(default_factory=ThemeSettings)
    wallet: WalletSettings = Field(default_factory=WalletSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)


SETTINGS_SCHEMAS = {
    "privacy": PrivacySettings,
    "notifications": NotificationSettings,
    "interaction": InteractionSettings,
    "theme": ThemeSettings,
    "wallet": WalletSettings,
    "security": SecuritySettings,
}

SETTING_TYPE_ALIASES = {
    "notification": "notifications",
    "interactions": "interaction",
    "appearance": "theme",
}

# Served to anonymous sessions; not a stored shape.
ANONYMOUS_SETTINGS = {
    "notifications": {
        "email": False,
        "push": False,
        "sms": False,
        "marketing": False,
        "security": True,
        "updates": False,
    },
    "privacy": {
        "profileVisibility": "public",
        "showEmail": False,
        "showPhone": False,
        "allowMessages": True,
        "allowFollows": True,
    },
    "theme": {
        "mode": "system",
        "primaryColor": "#1976d2",
        "fontSize": "medium",
    },
}


class SettingsValidationError(ValueError):
    """Raised when a settings update cannot be accepted."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


def resolve_setting_update(body: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Work out which category a settings update targets and validate it.

    Accepts ``settingType`` or ``type`` next to ``settings`` or ``data``; when
    neither type field is given the body itself is searched for a known
    category key.

    Returns:
        Tuple of (canonical setting type, validated camelCase settings dict)

    Raises:
        SettingsValidationError: Missing or unknown type, or invalid values
    """
    setting_type = body.get("settingType") or body.get("type")
    settings = body.get("settings") or body.get("data") or body

    if not setting_type and isinstance(settings, dict):
        for candidate in SETTINGS_SCHEMAS:
            if settings.get(candidate):
                setting_type = candidate
                settings = settings[candidate]
                break

    if not setting_type or not isinstance(setting_type, str):
        raise SettingsValidationError("Setting type is required")

    key = setting_type.lower()
    key = SETTING_TYPE_ALIASES.get(key, key)
    schema = SETTINGS_SCHEMAS.get(key)
    if schema is None:
        raise SettingsValidationError(
            f"Invalid setting type: {setting_type}. "
            f"Supported types: {', '.join(SETTINGS_SCHEMAS)}"
        )

    if not isinstance(settings, dict):
        raise SettingsValidationError("Settings validation failed", ["settings must be an object"])

    try:
        validated = schema.model_validate(settings)
    except ValidationError as e:
        raise SettingsValidationError(
            "Settings validation failed",
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
        )

    return key, validated.model_dump(mode="json", by_alias=True)
