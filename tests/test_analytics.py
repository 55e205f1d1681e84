"""Tests for the analytics folds and the farm-scoped service."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from zonealert.errors import ValidationError
from zonealert.models import DeviceSort, TimeRange, TrendInterval
from zonealert.services import analytics
from zonealert.services.analytics import AnalyticsService
from zonealert.storage import MemoryDocumentStore

UTC = timezone.utc
NEW_YORK = ZoneInfo("America/New_York")


def alert(detected_at: datetime, sensor_id: str = "s1", distance=30.0, resolved: bool = False,
          farm_id: str = "farm-1", severity: str = "high") -> dict:
    return {
        "sensor_id": sensor_id,
        "farm_id": farm_id,
        "trigger_distance": distance,
        "severity": severity,
        "is_resolved": resolved,
        "detected_at": detected_at,
    }


# ============================================================
# FOLDS
# ============================================================

class TestSummarize:

    def test_empty_range_gives_zeros(self):
        stats = analytics.summarize([], hours=24)

        assert stats == {
            "total_alerts": 0,
            "active_alerts": 0,
            "total_devices": 0,
            "avg_distance": 0,
            "min_distance": 0,
            "max_distance": 0,
            "alert_rate": 0,
        }

    def test_alerts_without_distance_skip_distance_stats(self):
        now = datetime(2024, 3, 12, 10, tzinfo=UTC)
        rows = [
            alert(now, distance=20.0),
            alert(now, distance=40.0, resolved=True, sensor_id="s2"),
            alert(now, distance=None),
        ]

        stats = analytics.summarize(rows, hours=24)

        assert stats["total_alerts"] == 3
        assert stats["active_alerts"] == 2
        assert stats["total_devices"] == 2
        assert stats["avg_distance"] == 30.0
        assert stats["min_distance"] == 20.0
        assert stats["max_distance"] == 40.0
        assert stats["alert_rate"] == 0.125


class TestTimeBuckets:

    def test_weeks_start_on_sunday(self):
        wednesday = datetime(2024, 3, 13, 12, tzinfo=UTC)
        sunday = datetime(2024, 3, 10, 0, 30, tzinfo=UTC)
        saturday = datetime(2024, 3, 9, 23, 30, tzinfo=UTC)

        assert analytics.bucket_key(wednesday, TrendInterval.WEEK, UTC) == "Week of 2024-03-10"
        assert analytics.bucket_key(sunday, TrendInterval.WEEK, UTC) == "Week of 2024-03-10"
        assert analytics.bucket_key(saturday, TrendInterval.WEEK, UTC) == "Week of 2024-03-03"

    def test_bucket_formats(self):
        dt = datetime(2024, 3, 10, 14, 45, tzinfo=UTC)

        assert analytics.bucket_key(dt, TrendInterval.HOUR, UTC) == "2024-03-10 14:00"
        assert analytics.bucket_key(dt, TrendInterval.DAY, UTC) == "2024-03-10"
        assert analytics.bucket_key(dt, TrendInterval.MONTH, UTC) == "2024-03"

    def test_trends_split_active_and_resolved(self):
        rows = [
            alert(datetime(2024, 3, 10, 9, tzinfo=UTC)),
            alert(datetime(2024, 3, 10, 18, tzinfo=UTC), resolved=True),
            alert(datetime(2024, 3, 11, 9, tzinfo=UTC)),
        ]

        result = analytics.trends(rows, TrendInterval.DAY, UTC)

        assert result == [
            {"period": "2024-03-10", "total": 2, "active": 1, "resolved": 1},
            {"period": "2024-03-11", "total": 1, "active": 1, "resolved": 0},
        ]

    def test_hourly_across_spring_forward(self):
        # 2024-03-10 02:00 local does not exist in New York
        rows = [
            alert(datetime(2024, 3, 10, 6, 30, tzinfo=UTC)),   # 01:30 EST
            alert(datetime(2024, 3, 10, 7, 30, tzinfo=UTC)),   # 03:30 EDT
            alert(datetime(2024, 3, 11, 4, 30, tzinfo=UTC)),   # 00:30 next day
        ]

        hours = analytics.hourly(rows, date(2024, 3, 10), NEW_YORK)

        assert len(hours) == 24
        assert hours[1]["total"] == 1
        assert hours[2]["total"] == 0
        assert hours[3]["total"] == 1
        assert sum(h["total"] for h in hours) == 2

    def test_local_day_bounds_cover_short_day(self):
        start, end = analytics.local_day_bounds(date(2024, 3, 10), NEW_YORK)

        assert start.astimezone(UTC) == datetime(2024, 3, 10, 5, tzinfo=UTC)
        assert end.astimezone(UTC) == datetime(2024, 3, 11, 4, tzinfo=UTC)
        assert end.astimezone(UTC) - start.astimezone(UTC) == timedelta(hours=23)


class TestHeatmap:

    def test_rows_start_on_sunday(self):
        rows = [
            alert(datetime(2024, 3, 10, 14, tzinfo=UTC)),   # Sunday
            alert(datetime(2024, 3, 11, 9, tzinfo=UTC)),    # Monday
            alert(datetime(2024, 3, 16, 23, tzinfo=UTC)),   # Saturday
        ]

        matrix = analytics.heatmap(rows, UTC)

        assert matrix[0][14] == 1
        assert matrix[1][9] == 1
        assert matrix[6][23] == 1

    def test_sum_equals_alert_count(self):
        start = datetime(2024, 3, 1, tzinfo=UTC)
        rows = [alert(start + timedelta(hours=7 * i)) for i in range(50)]

        matrix = analytics.heatmap(rows, NEW_YORK)

        assert len(matrix) == 7
        assert all(len(row) == 24 for row in matrix)
        assert sum(sum(row) for row in matrix) == 50


class TestDeviceStats:

    def test_sorted_by_alert_count(self):
        now = datetime(2024, 3, 12, tzinfo=UTC)
        rows = [alert(now, "s1"), alert(now, "s2"), alert(now, "s2", resolved=True)]

        devices = analytics.device_stats(rows, DeviceSort.ALERTS)

        assert [d["sensor_id"] for d in devices] == ["s2", "s1"]
        assert devices[0]["total_alerts"] == 2
        assert devices[0]["active_alerts"] == 1

    def test_sorted_by_last_seen(self):
        rows = [
            alert(datetime(2024, 3, 12, tzinfo=UTC), "s1"),
            alert(datetime(2024, 3, 1, tzinfo=UTC), "s2"),
            alert(datetime(2024, 3, 2, tzinfo=UTC), "s2"),
        ]

        devices = analytics.device_stats(rows, DeviceSort.LAST_SEEN, limit=1)

        assert [d["sensor_id"] for d in devices] == ["s1"]

    def test_detail_breaks_down_severity(self):
        now = datetime(2024, 3, 12, tzinfo=UTC)
        rows = [
            alert(now, "s1", 10.0, severity="critical"),
            alert(now - timedelta(hours=1), "s1", 40.0, resolved=True),
            alert(now, "s2"),
        ]

        detail = analytics.device_detail(rows, "s1")

        assert detail["total_alerts"] == 2
        assert detail["resolved_alerts"] == 1
        assert detail["by_severity"] == {"critical": 1, "high": 1}
        assert detail["first_seen"] == now - timedelta(hours=1)
        assert detail["last_seen"] == now


# ============================================================
# SERVICE
# ============================================================

class TestAnalyticsService:

    NOW = datetime(2024, 3, 12, 12, tzinfo=UTC)

    async def seed(self) -> MemoryDocumentStore:
        store = MemoryDocumentStore()
        await store.create("alerts", "a1", alert(self.NOW - timedelta(hours=2)))
        await store.create("alerts", "a2", alert(self.NOW - timedelta(days=3), resolved=True))
        await store.create("alerts", "a3", alert(self.NOW - timedelta(days=20)))
        await store.create("alerts", "other", alert(self.NOW - timedelta(hours=1), farm_id="farm-2"))
        return store

    @pytest.mark.asyncio
    async def test_dashboard_only_counts_own_farms_in_range(self):
        service = AnalyticsService(await self.seed(), UTC)

        stats = await service.dashboard(["farm-1"], TimeRange.WEEK, now=self.NOW)

        assert stats["time_range"] == "week"
        assert stats["total_alerts"] == 2
        assert stats["active_alerts"] == 1

    @pytest.mark.asyncio
    async def test_no_farms_gives_empty_results(self):
        service = AnalyticsService(await self.seed(), UTC)

        stats = await service.dashboard([], TimeRange.YEAR, now=self.NOW)
        matrix = await service.heatmap([], now=self.NOW)

        assert stats["total_alerts"] == 0
        assert matrix["total"] == 0

    @pytest.mark.asyncio
    async def test_heatmap_window(self):
        service = AnalyticsService(await self.seed(), UTC)

        result = await service.heatmap(["farm-1"], weeks=1, now=self.NOW)

        assert result["total"] == 2
        assert result["labels"]["days"][0] == "Sunday"

    @pytest.mark.asyncio
    async def test_start_after_end_is_rejected(self):
        service = AnalyticsService(await self.seed(), UTC)

        with pytest.raises(ValidationError):
            await service.trends(["farm-1"], self.NOW, self.NOW - timedelta(days=1))
