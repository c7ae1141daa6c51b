"""Observability – structured logging and health checks."""
from reliable_delivery.observability.health import (
    DeadLetterHealthCheck,
    HealthCheck,
    HealthStatus,
    OutboxBacklogHealthCheck,
)
from reliable_delivery.observability.logging import (
    configure_from_settings,
    configure_logging,
    expand_errors,
    get_logger,
)

__all__ = [
    "DeadLetterHealthCheck",
    "HealthCheck",
    "HealthStatus",
    "OutboxBacklogHealthCheck",
    "configure_from_settings",
    "configure_logging",
    "expand_errors",
    "get_logger",
]
