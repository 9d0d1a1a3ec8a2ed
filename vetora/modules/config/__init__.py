"""
Config Module - Black Box Interface

Purpose: Boot settings for the process (Redis connection, bind address, logging)
Interface: get_config(), ConfigModule.get(), ConfigModule.redis_url()
Hidden: .env loading, environment parsing, defaults

Service-level settings (secrets, relying party, OAuth clients) live in
vetora.config.provider; this module only covers what is needed to boot.
"""

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv


def _parse_port(value: str) -> int:
    # Container links export tcp://host:port
    if value.startswith("tcp://"):
        return int(value.rsplit(":", 1)[-1])
    return int(value)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class BootSetting:
    """One environment-backed boot setting."""
    env: str
    description: str
    default: Optional[str] = None
    parse: Callable[[str], Any] = str
    required: bool = True


BOOT_SETTINGS: Dict[str, BootSetting] = {
    "redis_url": BootSetting("REDIS_URL", "Full Redis URL, overrides host/port/db", required=False),
    "redis_host": BootSetting("REDIS_HOST", "Redis server hostname", "localhost"),
    "redis_port": BootSetting("REDIS_PORT", "Redis server port number", "6379", _parse_port),
    "redis_db": BootSetting("REDIS_DB", "Redis database number", "0", int),
    "redis_password": BootSetting("REDIS_PASSWORD", "Redis authentication password", required=False),
    "host": BootSetting("API_HOST", "API server bind address", "0.0.0.0"),
    "port": BootSetting("API_PORT", "API server port", "5000", int),
    "log_level": BootSetting("LOG_LEVEL", "Logging level (DEBUG, INFO, WARNING, ERROR)", "INFO"),
    "environment": BootSetting("ENVIRONMENT", "Deployment environment (development, production, test)", "development"),
    "debug": BootSetting("DEBUG", "Enable auto-reload", "false", _parse_bool, required=False),
}


class ConfigModule:
    """Boot configuration read once from the environment."""

    def __init__(self, env_file: Optional[str] = None):
        load_dotenv(env_file)
        self._config: Dict[str, Any] = {}
        for key, setting in BOOT_SETTINGS.items():
            raw = os.getenv(setting.env, setting.default)
            try:
                self._config[key] = setting.parse(raw) if raw is not None else None
            except ValueError as e:
                raise ValueError(f"Invalid value for {setting.env}: {raw!r}") from e

        missing = [BOOT_SETTINGS[k].env for k, v in self._config.items() if BOOT_SETTINGS[k].required and v is None]
        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")

    def get(self, key: str, default: Any = None) -> Any:
        value = self._config.get(key)
        return default if value is None else value

    def redis_url(self) -> str:
        """Redis URL without credentials (password is passed separately)."""
        if self._config["redis_url"]:
            return self._config["redis_url"]
        return f"redis://{self._config['redis_host']}:{self._config['redis_port']}/{self._config['redis_db']}"

    @staticmethod
    def get_config_schema() -> Dict[str, Any]:
        """
        Describe the boot settings.

        Returns:
            {'required': {key: description}, 'optional': {key: {description, default, env}}}
        """
        return {
            "required": {k: s.description for k, s in BOOT_SETTINGS.items() if s.required},
            "optional": {
                k: {"description": s.description, "default": s.default, "env": s.env}
                for k, s in BOOT_SETTINGS.items()
                if not s.required
            },
        }


_instance: Optional[ConfigModule] = None


def get_config() -> ConfigModule:
    """Get the configuration module singleton."""
    global _instance
    if _instance is None:
        _instance = ConfigModule()
    return _instance


__all__ = ["get_config", "ConfigModule", "BOOT_SETTINGS"]
