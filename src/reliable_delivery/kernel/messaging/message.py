"""Kernel messaging – integration message and transport port."""
from __future__ import annotations

import abc
import dataclasses
from datetime import UTC, datetime
from typing import Any, TypeAlias
from uuid import uuid4

from reliable_delivery.kernel.errors import ValidationError

EventName: TypeAlias = str
MessageId: TypeAlias = str


@dataclasses.dataclass(frozen=True)
class IntegrationMessage:
    """An outbound integration event.

    Identity is ``message_id``: two messages with the same id are the same
    logical event, possibly redelivered.
    """

    event_name: EventName
    aggregate_id: str
    payload: dict[str, Any] = dataclasses.field(default_factory=dict)
    message_id: MessageId = dataclasses.field(default_factory=lambda: str(uuid4()))
    headers: dict[str, str] = dataclasses.field(default_factory=dict)
    created_at: datetime = dataclasses.field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if not self.message_id:
            raise ValidationError("IntegrationMessage.message_id must not be empty")
        if not self.event_name:
            raise ValidationError("IntegrationMessage.event_name must not be empty")

    @property
    def routing_key(self) -> str:
        """``<event_name>.<aggregate_id>`` – what brokers route on."""
        return f"{self.event_name}.{self.aggregate_id}"


class MessageTransport(abc.ABC):
    """Port: push a message to a queue / broker.

    Implementations raise :class:`~reliable_delivery.kernel.errors.TransientDeliveryError`
    for retryable failures and
    :class:`~reliable_delivery.kernel.errors.PermanentDeliveryError` when the
    broker rejects the message outright.  Returning normally is an
    acknowledgment.
    """

    @abc.abstractmethod
    async def send(self, message: IntegrationMessage) -> None: ...


__all__ = ["EventName", "IntegrationMessage", "MessageId", "MessageTransport"]
