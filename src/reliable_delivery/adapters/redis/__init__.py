"""Redis adapter – inbox and idempotency stores on a shared keyspace."""
from reliable_delivery.adapters.redis.client import redis_client, storage_errors
from reliable_delivery.adapters.redis.idempotency import RedisIdempotencyBackend
from reliable_delivery.adapters.redis.inbox import RedisInboxStore

__all__ = ["RedisIdempotencyBackend", "RedisInboxStore", "redis_client", "storage_errors"]
