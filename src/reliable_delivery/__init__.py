"""
reliable_delivery – outbox, inbox, idempotency keys and sagas.

Import path convention::

    from reliable_delivery.kernel.messaging import IntegrationMessage
    from reliable_delivery.application.outbox import OutboxRelay
    from reliable_delivery.application.idempotency import IdempotencyKeyStore
    from reliable_delivery.application.saga import SagaCoordinator
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
