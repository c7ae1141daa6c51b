"""Application Inbox Pattern – at-most-once inbound message processing."""
from reliable_delivery.application.inbox.in_memory import InMemoryInboxStore
from reliable_delivery.application.inbox.processor import InboxProcessor, MessageHandler

__all__ = [
    "InMemoryInboxStore",
    "InboxProcessor",
    "MessageHandler",
]
