"""Config – configuration error hierarchy."""
from __future__ import annotations

from reliable_delivery.kernel.errors import BaseError


class ConfigError(BaseError):
    """Base class for configuration errors."""

    default_code = "config_error"


class MissingRequiredSettingError(ConfigError):
    """A required setting has no value in any source."""

    default_code = "missing_required_setting"

    def __init__(self, key: str) -> None:
        super().__init__(f"Required setting '{key}' is missing", detail={"setting": key})
        self.key = key


class InvalidSettingValueError(ConfigError):
    """A setting is present but its value is not acceptable."""

    default_code = "invalid_setting_value"

    def __init__(self, key: str, value: object, reason: str = "") -> None:
        msg = f"Invalid value for '{key}': {value!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg, detail={"setting": key})
        self.key = key
        self.value = value


__all__ = ["ConfigError", "InvalidSettingValueError", "MissingRequiredSettingError"]
