"""Config – dataclass settings loaded from the environment."""
from reliable_delivery.config.errors import (
    ConfigError,
    InvalidSettingValueError,
    MissingRequiredSettingError,
)
from reliable_delivery.config.settings import (
    DeliverySettings,
    EnvSettingsLoader,
    Settings,
    SettingsLoader,
)

__all__ = [
    "ConfigError",
    "DeliverySettings",
    "EnvSettingsLoader",
    "InvalidSettingValueError",
    "MissingRequiredSettingError",
    "Settings",
    "SettingsLoader",
]
