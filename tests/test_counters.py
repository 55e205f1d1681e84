"""Tests for the denormalized counter maintainer."""

import pytest
import pytest_asyncio

from zonealert.errors import NotFoundError, ValidationError
from zonealert.services.counters import CounterMaintainer, EntityType
from zonealert.storage import MemoryDocumentStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def counters(store):
    return CounterMaintainer(store)


@pytest_asyncio.fixture
async def farm(store):
    """One farm with two zones, all counters at zero."""
    await store.create("farmers", "farmer-1", {"farms_count": 1})
    await store.create("farms", "farm-1", {
        "farmer_id": "farmer-1",
        "zones_count": 2,
        "livestock_count": 0,
        "sensors_count": 0,
        "active_alerts": 0,
    })
    for zone_id in ("zone-a", "zone-b"):
        await store.create("boundary_zones", zone_id, {
            "farm_id": "farm-1",
            "current_livestock_count": 0,
            "sensors_count": 0,
        })
    return store


async def value(store, collection: str, doc_id: str, field_name: str):
    doc = await store.get(collection, doc_id)
    return doc.data.get(field_name)


# ============================================================
# ADJUSTMENTS
# ============================================================

class TestAdjust:

    @pytest.mark.asyncio
    async def test_adjust_increments_and_decrements(self, farm, counters):
        await counters.adjust(EntityType.FARM, "farm-1", "livestock_count", 3)
        await counters.adjust(EntityType.FARM, "farm-1", "livestock_count", -1)

        assert await value(farm, "farms", "farm-1", "livestock_count") == 2

    @pytest.mark.asyncio
    async def test_adjust_missing_parent_raises(self, store, counters):
        with pytest.raises(NotFoundError):
            await counters.adjust(EntityType.FARM, "ghost", "livestock_count", 1)

    @pytest.mark.asyncio
    async def test_zero_delta_is_a_noop(self, store, counters):
        await counters.adjust(EntityType.FARM, "ghost", "livestock_count", 0)

    @pytest.mark.asyncio
    async def test_unknown_counter_is_rejected(self, farm, counters):
        with pytest.raises(ValidationError):
            await counters.adjust(EntityType.FARM, "farm-1", "farm_name", 1)

        with pytest.raises(ValidationError):
            counters.stage(farm.batch(), EntityType.ZONE, "zone-a", "active_alerts", 1)


class TestBatches:

    @pytest.mark.asyncio
    async def test_entity_write_and_counters_commit_together(self, farm, counters):
        batch = farm.batch()
        batch.create("livestock", "goat-1", {"farm_id": "farm-1", "zone_id": "zone-a"})
        counters.stage(batch, EntityType.FARM, "farm-1", "livestock_count", 1)
        counters.stage(batch, EntityType.ZONE, "zone-a", "current_livestock_count", 1)

        await counters.commit(batch)

        assert await farm.get("livestock", "goat-1") is not None
        assert await value(farm, "farms", "farm-1", "livestock_count") == 1
        assert await value(farm, "boundary_zones", "zone-a", "current_livestock_count") == 1

    @pytest.mark.asyncio
    async def test_failed_counter_rolls_back_entity_write(self, farm, counters):
        batch = farm.batch()
        batch.create("livestock", "goat-1", {"farm_id": "farm-1", "zone_id": "zone-missing"})
        counters.stage(batch, EntityType.FARM, "farm-1", "livestock_count", 1)
        counters.stage(batch, EntityType.ZONE, "zone-missing", "current_livestock_count", 1)

        with pytest.raises(NotFoundError):
            await counters.commit(batch)

        assert await farm.get("livestock", "goat-1") is None
        assert await value(farm, "farms", "farm-1", "livestock_count") == 0

    @pytest.mark.asyncio
    async def test_reparent_moves_one_unit(self, farm, counters):
        await counters.adjust(EntityType.ZONE, "zone-a", "current_livestock_count", 2)

        batch = counters.reparent(
            farm.batch(), EntityType.ZONE, "current_livestock_count", "zone-a", "zone-b"
        )
        await counters.commit(batch)

        assert await value(farm, "boundary_zones", "zone-a", "current_livestock_count") == 1
        assert await value(farm, "boundary_zones", "zone-b", "current_livestock_count") == 1

    def test_reparent_to_same_parent_stages_nothing(self, store, counters):
        batch = counters.reparent(
            store.batch(), EntityType.ZONE, "current_livestock_count", "zone-a", "zone-a"
        )
        assert batch.operations == []


# ============================================================
# MAINTENANCE
# ============================================================

class TestMaintenance:

    @pytest.mark.asyncio
    async def test_reconcile_fixes_drift(self, farm, counters):
        await farm.create("livestock", "goat-1", {"farm_id": "farm-1", "zone_id": "zone-a"})
        await farm.create("livestock", "goat-2", {"farm_id": "farm-1", "zone_id": "zone-a"})
        await farm.create("alerts", "alert-1", {"farm_id": "farm-1", "is_resolved": False})
        # zone-b claims an animal it does not have
        await farm.update("boundary_zones", "zone-b", {"current_livestock_count": 4})

        result = await counters.reconcile()

        fixed = {(c["id"], c["field"]): (c["was"], c["now"]) for c in result["corrections"]}
        assert fixed[("farm-1", "livestock_count")] == (0, 2)
        assert fixed[("farm-1", "active_alerts")] == (0, 1)
        assert fixed[("zone-a", "current_livestock_count")] == (0, 2)
        assert fixed[("zone-b", "current_livestock_count")] == (4, 0)

        assert await value(farm, "farms", "farm-1", "livestock_count") == 2
        assert await value(farm, "boundary_zones", "zone-b", "current_livestock_count") == 0

    @pytest.mark.asyncio
    async def test_reconcile_without_drift_changes_nothing(self, farm, counters):
        result = await counters.reconcile()

        assert result["corrections"] == []
        assert result["checked"] == 4

    @pytest.mark.asyncio
    async def test_reset_daily_counters(self, store, counters):
        await store.create("sensor_units", "s1", {"total_readings_today": 12, "alerts_triggered_today": 2})
        await store.create("sensor_units", "s2", {"total_readings_today": 0, "alerts_triggered_today": 0})

        reset = await counters.reset_daily_counters()

        assert reset == 1
        assert await value(store, "sensor_units", "s1", "total_readings_today") == 0
        assert await value(store, "sensor_units", "s1", "alerts_triggered_today") == 0
