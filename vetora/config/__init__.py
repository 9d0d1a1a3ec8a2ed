"""Service configuration providers."""
from .provider import ConfigProvider, EnvConfigProvider

__all__ = ["ConfigProvider", "EnvConfigProvider"]
