"""SQLAlchemy adapter – relational stores for outbox, inbox, idempotency and sagas."""
from reliable_delivery.adapters.sqlalchemy.dead_letter import SqlAlchemyDeadLetterStore
from reliable_delivery.adapters.sqlalchemy.idempotency import SqlAlchemyIdempotencyBackend
from reliable_delivery.adapters.sqlalchemy.inbox import SqlAlchemyInboxStore
from reliable_delivery.adapters.sqlalchemy.models import create_tables, metadata
from reliable_delivery.adapters.sqlalchemy.outbox import SqlAlchemyOutboxStore
from reliable_delivery.adapters.sqlalchemy.saga import SqlAlchemySagaStore
from reliable_delivery.adapters.sqlalchemy.session import SqlAlchemySessionFactory, SqlAlchemyStore
from reliable_delivery.adapters.sqlalchemy.uow import SqlAlchemyUnitOfWork

__all__ = [
    "SqlAlchemyDeadLetterStore",
    "SqlAlchemyIdempotencyBackend",
    "SqlAlchemyInboxStore",
    "SqlAlchemyOutboxStore",
    "SqlAlchemySagaStore",
    "SqlAlchemySessionFactory",
    "SqlAlchemyStore",
    "SqlAlchemyUnitOfWork",
    "create_tables",
    "metadata",
]
