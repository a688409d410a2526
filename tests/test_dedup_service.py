from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from receptionist.models import DeliveryDedup
from receptionist.services.dedup_service import Deduplicator, build_redis_client, prune_expired


class TestDeduplicator:
    @pytest.mark.asyncio
    async def test_first_claim_wins(self, db):
        dedup = Deduplicator()
        assert await dedup.is_duplicate(db, "t1", "telegram", "100") is False
        assert await dedup.is_duplicate(db, "t1", "telegram", "100") is True
        assert db.query(DeliveryDedup).count() == 1

    @pytest.mark.asyncio
    async def test_scoped_by_tenant_and_channel(self, db):
        dedup = Deduplicator()
        assert await dedup.is_duplicate(db, "t1", "telegram", "100") is False
        assert await dedup.is_duplicate(db, "t2", "telegram", "100") is False
        assert await dedup.is_duplicate(db, "t1", "whatsapp", "100") is False

    @pytest.mark.asyncio
    async def test_missing_message_id_is_never_duplicate(self, db):
        dedup = Deduplicator()
        assert await dedup.is_duplicate(db, "t1", "telegram", None) is False
        assert await dedup.is_duplicate(db, "t1", "telegram", None) is False
        assert db.query(DeliveryDedup).count() == 0

    @pytest.mark.asyncio
    async def test_redis_hit_short_circuits(self, db):
        redis_client = AsyncMock()
        redis_client.set.return_value = None
        dedup = Deduplicator(redis_client=redis_client, ttl_seconds=60)

        assert await dedup.is_duplicate(db, "t1", "telegram", "100") is True
        redis_client.set.assert_awaited_once_with("receptionist:dedup:t1:telegram:100", "1", ex=60, nx=True)
        assert db.query(DeliveryDedup).count() == 0

    @pytest.mark.asyncio
    async def test_redis_outage_falls_back_to_db(self, db):
        redis_client = AsyncMock()
        redis_client.set.side_effect = ConnectionError("redis down")
        dedup = Deduplicator(redis_client=redis_client)

        assert await dedup.is_duplicate(db, "t1", "telegram", "100") is False
        assert await dedup.is_duplicate(db, "t1", "telegram", "100") is True

    def test_no_redis_url_means_no_client(self):
        assert build_redis_client(None) is None

    @pytest.mark.asyncio
    async def test_expired_rows_are_pruned_and_id_can_be_claimed_again(self, db):
        db.add(
            DeliveryDedup(
                tenant_id="t1",
                channel="telegram",
                message_id="100",
                created_at=datetime.now(timezone.utc) - timedelta(days=2),
            )
        )
        db.commit()
        db.expunge_all()
        dedup = Deduplicator(ttl_seconds=86400)

        assert await dedup.is_duplicate(db, "t1", "telegram", "100") is False
        assert db.query(DeliveryDedup).count() == 1

    @pytest.mark.asyncio
    async def test_rows_within_ttl_are_kept(self, db):
        dedup = Deduplicator(ttl_seconds=86400, prune_interval_seconds=0)
        await dedup.is_duplicate(db, "t1", "telegram", "100")

        assert await dedup.is_duplicate(db, "t1", "telegram", "101") is False
        assert prune_expired(db, 86400) == 0
        assert db.query(DeliveryDedup).count() == 2

    @pytest.mark.asyncio
    async def test_pruning_runs_at_most_once_per_interval(self, db):
        dedup = Deduplicator(ttl_seconds=60, prune_interval_seconds=3600)
        with patch("receptionist.services.dedup_service.prune_expired", return_value=0) as mock_prune:
            await dedup.is_duplicate(db, "t1", "telegram", "100")
            await dedup.is_duplicate(db, "t1", "telegram", "101")

        mock_prune.assert_called_once_with(db, 60)
