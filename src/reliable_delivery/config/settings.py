"""Config – Settings base class, environment loader and DeliverySettings."""
from __future__ import annotations

import abc
import dataclasses
import logging
import os
from typing import Any, Callable, Mapping, TypeVar

from reliable_delivery.config.errors import (
    ConfigError,
    InvalidSettingValueError,
    MissingRequiredSettingError,
)


@dataclasses.dataclass
class Settings:
    """Base class for 12-factor settings."""

    _prefix: dataclasses.ClassVar[str] = ""

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Override to add cross-field validation."""


T = TypeVar("T", bound=Settings)


class SettingsLoader(abc.ABC):
    """Port: load settings from an external source."""

    @abc.abstractmethod
    def load(self, settings_class: type[T]) -> T: ...


_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


# keyed by type name; dataclass annotations may be strings
_COERCERS: dict[str, Callable[[str], Any]] = {
    "bool": _parse_bool,
    "int": int,
    "float": float,
    "str": str,
}


class EnvSettingsLoader(SettingsLoader):
    """Build settings from ``<PREFIX>_<FIELD>`` environment variables.

    *environ* replaces :data:`os.environ`, which keeps tests hermetic.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    def load(self, settings_class: type[T]) -> T:
        environ = os.environ if self._environ is None else self._environ
        prefix = settings_class._prefix.upper()
        values: dict[str, Any] = {}
        for field in dataclasses.fields(settings_class):
            name = f"{prefix}_{field.name}".upper() if prefix else field.name.upper()
            if name in environ:
                values[field.name] = _coerce(name, environ[name], field.type)
            elif _is_required(field):
                raise MissingRequiredSettingError(name)
        try:
            return settings_class(**values)
        except ConfigError:
            raise
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Cannot build {settings_class.__name__}: {exc}") from exc


def _is_required(field: dataclasses.Field[Any]) -> bool:
    return field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING


def _coerce(name: str, raw: str, annotation: Any) -> Any:
    type_name = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", "str")
    coerce = _COERCERS.get(type_name, str)
    try:
        return coerce(raw)
    except ValueError as exc:
        raise InvalidSettingValueError(name, raw, str(exc)) from exc


@dataclasses.dataclass
class DeliverySettings(Settings):
    """Tuning knobs for the relay, stores and saga coordinator.

    Every field can be overridden with a ``DELIVERY_<FIELD>`` environment
    variable, e.g. ``DELIVERY_MAX_DELIVERY_ATTEMPTS=8``.
    """

    _prefix: dataclasses.ClassVar[str] = "DELIVERY"

    relay_batch_size: int = 100
    relay_poll_interval_seconds: float = 1.0
    relay_claim_lease_seconds: float = 30.0
    max_delivery_attempts: int = 5
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 300.0
    send_timeout_seconds: float = 10.0
    idempotency_ttl_seconds: float = 86400.0
    idempotency_lock_seconds: float = 60.0
    idempotency_wait_timeout_seconds: float = 5.0
    inbox_retention_seconds: float = 7 * 86400.0
    saga_step_timeout_seconds: float = 30.0
    compensation_max_attempts: int = 3
    log_level: str = "INFO"
    log_json: bool = True

    def _validate(self) -> None:
        positive = (
            "relay_batch_size",
            "relay_claim_lease_seconds",
            "max_delivery_attempts",
            "send_timeout_seconds",
            "idempotency_ttl_seconds",
            "idempotency_lock_seconds",
            "saga_step_timeout_seconds",
            "compensation_max_attempts",
        )
        for name in positive:
            value = getattr(self, name)
            if value <= 0:
                raise InvalidSettingValueError(name, value, "must be positive")
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise InvalidSettingValueError(
                "backoff_max_seconds", self.backoff_max_seconds, "must be >= backoff_base_seconds"
            )
        if self.log_level.upper() not in logging.getLevelNamesMapping():
            raise InvalidSettingValueError("log_level", self.log_level, "unknown logging level")
        # lease must outlive one send
        if self.relay_claim_lease_seconds <= self.send_timeout_seconds:
            raise InvalidSettingValueError(
                "relay_claim_lease_seconds",
                self.relay_claim_lease_seconds,
                "must exceed send_timeout_seconds",
            )
        # a saga step must finish before its idempotency record can be taken over
        if self.idempotency_lock_seconds <= self.saga_step_timeout_seconds:
            raise InvalidSettingValueError(
                "idempotency_lock_seconds",
                self.idempotency_lock_seconds,
                "must exceed saga_step_timeout_seconds",
            )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "DeliverySettings":
        return EnvSettingsLoader(environ).load(cls)


__all__ = ["DeliverySettings", "EnvSettingsLoader", "Settings", "SettingsLoader"]
