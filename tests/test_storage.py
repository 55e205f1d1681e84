"""Tests for the in-memory document store's write rules."""

import pytest

from zonealert.errors import ConflictError, NotFoundError
from zonealert.storage import MemoryDocumentStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


# ============================================================
# BATCHES
# ============================================================

class TestBatch:

    @pytest.mark.asyncio
    async def test_failed_batch_applies_nothing(self, store):
        await store.create("farms", "farm-1", {"active_alerts": 0})

        batch = store.batch()
        batch.increment("farms", "farm-1", "active_alerts", 1)
        batch.increment("farms", "missing", "active_alerts", 1)

        with pytest.raises(NotFoundError):
            await batch.commit()

        assert (await store.get("farms", "farm-1")).data["active_alerts"] == 0

    @pytest.mark.asyncio
    async def test_create_existing_conflicts(self, store):
        await store.create("farms", "farm-1", {})

        with pytest.raises(ConflictError):
            await store.create("farms", "farm-1", {})


class TestPreconditions:

    @pytest.mark.asyncio
    async def test_unchanged_document_passes(self, store):
        await store.create("alerts", "a1", {"is_resolved": False})
        doc = await store.get("alerts", "a1")

        await store.batch().update("alerts", "a1", {"is_resolved": True},
                                   last_update_time=doc.update_time).commit()

        assert (await store.get("alerts", "a1")).data["is_resolved"] is True

    @pytest.mark.asyncio
    async def test_stale_update_conflicts_and_rolls_back(self, store):
        await store.create("farms", "farm-1", {"active_alerts": 1})
        await store.create("alerts", "a1", {"is_resolved": False})
        stale = await store.get("alerts", "a1")
        await store.update("alerts", "a1", {"is_resolved": True})

        batch = store.batch()
        batch.update("alerts", "a1", {"is_resolved": True}, last_update_time=stale.update_time)
        batch.increment("farms", "farm-1", "active_alerts", -1)

        with pytest.raises(ConflictError):
            await batch.commit()

        assert (await store.get("farms", "farm-1")).data["active_alerts"] == 1

    @pytest.mark.asyncio
    async def test_delete_of_deleted_document_conflicts(self, store):
        await store.create("alerts", "a1", {})
        doc = await store.get("alerts", "a1")
        await store.delete("alerts", "a1")

        with pytest.raises(ConflictError):
            await store.batch().delete("alerts", "a1", last_update_time=doc.update_time).commit()

    @pytest.mark.asyncio
    async def test_every_write_changes_update_time(self, store):
        await store.create("farms", "farm-1", {"active_alerts": 0})
        before = (await store.get("farms", "farm-1")).update_time

        await store.increment("farms", "farm-1", "active_alerts", 1)

        after = (await store.get("farms", "farm-1")).update_time
        assert after != before
        assert [d.update_time for d in await store.query("farms")] == [after]
