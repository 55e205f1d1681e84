"""Tests for the live status record and staleness."""

import pytest

from zonealert.errors import NotFoundError
from zonealert.services.live_status import LiveStatusTracker, is_stale
from zonealert.storage import MemoryRealtimeStore


def test_staleness_boundary_is_strict():
    assert not is_stale(0, 300_000)
    assert is_stale(0, 300_001)
    assert not is_stale(1_000, 1_000)


@pytest.fixture
def tracker():
    return LiveStatusTracker(MemoryRealtimeStore())


class TestLiveStatusTracker:

    @pytest.mark.asyncio
    async def test_reading_overwrites_record(self, tracker):
        await tracker.update_status("s1", {"distance_measured": 70, "timestamp": 1_000, "status": "normal"})
        await tracker.update_status("s1", {"distance_measured": 30, "timestamp": 2_000, "status": "alert"})

        status = await tracker.get_status("s1")
        assert status.last_reading == 30
        assert status.last_timestamp == 2_000
        assert status.status == "alert"
        assert status.is_online

    @pytest.mark.asyncio
    async def test_battery_survives_new_readings(self, tracker):
        await tracker.initialize("s1")
        await tracker.set_battery("s1", 42)
        await tracker.update_status("s1", {"distance_measured": 70, "timestamp": 1_000, "status": "normal"})

        status = await tracker.get_status("s1")
        assert status.battery_level == 42

    @pytest.mark.asyncio
    async def test_describe_reports_staleness(self, tracker):
        await tracker.update_status("s1", {"distance_measured": 70, "timestamp": 0, "status": "normal"})

        fresh = await tracker.describe("s1", now=300_000)
        stale = await tracker.describe("s1", now=300_001)
        assert fresh["is_stale"] is False
        assert stale["is_stale"] is True
        assert stale["age_seconds"] == 300

    @pytest.mark.asyncio
    async def test_describe_unknown_sensor(self, tracker):
        with pytest.raises(NotFoundError):
            await tracker.describe("never-reported")

    @pytest.mark.asyncio
    async def test_mark_offline(self, tracker):
        await tracker.update_status("s1", {"distance_measured": 70, "timestamp": 1_000, "status": "normal"})
        await tracker.mark_offline("s1")

        status = await tracker.get_status("s1")
        assert status.is_online is False
        assert status.last_reading == 70
