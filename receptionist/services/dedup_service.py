import time
from datetime import datetime, timedelta, timezone
from typing import Optional

import redis.asyncio as redis_async
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from receptionist.logging_config import get_logger
from receptionist.models import DeliveryDedup

logger = get_logger("dedup_service")


def build_redis_client(redis_url: Optional[str], socket_timeout_seconds: float = 2.0):
    if not redis_url:
        return None
    return redis_async.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=socket_timeout_seconds,
        socket_timeout=socket_timeout_seconds,
    )


def _claim_in_db(db: Session, tenant_id: str, channel: str, message_id: str) -> bool:
    """Insert the dedup row. False when it already exists."""
    db.add(
        DeliveryDedup(
            tenant_id=tenant_id,
            channel=channel,
            message_id=message_id,
            created_at=datetime.now(timezone.utc),
        )
    )
    try:
        db.commit()
        return True
    except IntegrityError:
        db.rollback()
        return False


def prune_expired(db: Session, ttl_seconds: int) -> int:
    """Delete dedup rows older than the retention window. Returns the number removed."""
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=ttl_seconds)
    removed = db.query(DeliveryDedup).filter(DeliveryDedup.created_at < cutoff).delete(synchronize_session=False)
    db.commit()
    if removed:
        logger.info("Expired dedup rows pruned", extra={"context": {"removed": removed}})
    return removed


class Deduplicator:
    """Claims provider message ids once per (tenant, channel).

    Redis SET NX is the fast path when configured; the delivery_dedup table is
    always written so retries are caught across restarts. Table rows live as long
    as the Redis keys and are pruned at most once per prune interval.
    """

    def __init__(self, redis_client=None, ttl_seconds: int = 86400, prune_interval_seconds: int = 3600):
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds
        self.prune_interval_seconds = prune_interval_seconds
        self._last_pruned: Optional[float] = None

    def _claim(self, db: Session, tenant_id: str, channel: str, message_id: str) -> bool:
        now = time.monotonic()
        if self._last_pruned is None or now - self._last_pruned >= self.prune_interval_seconds:
            self._last_pruned = now
            try:
                prune_expired(db, self.ttl_seconds)
            except Exception as e:
                db.rollback()
                logger.warning(f"Dedup pruning failed: {e}")
        return _claim_in_db(db, tenant_id, channel, message_id)

    async def is_duplicate(self, db: Session, tenant_id: str, channel: str, message_id: Optional[str]) -> bool:
        if not message_id:
            return False

        if self.redis_client:
            key = f"receptionist:dedup:{tenant_id}:{channel}:{message_id}"
            try:
                was_set = await self.redis_client.set(key, "1", ex=self.ttl_seconds, nx=True)
                if not was_set:
                    return True
            except Exception as e:
                logger.warning(f"Dedup redis unavailable, falling back to DB: {e}")

        claimed = await run_in_threadpool(self._claim, db, tenant_id, channel, message_id)
        if not claimed:
            logger.info(
                "Duplicate delivery skipped",
                extra={"context": {"tenant_id": tenant_id, "channel": channel, "message_id": message_id}},
            )
        return not claimed

    async def close(self) -> None:
        if self.redis_client:
            await self.redis_client.aclose()
