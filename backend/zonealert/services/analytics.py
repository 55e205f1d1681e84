"""
Analytics (Read-Side Aggregator)
================================

Folds alert documents into dashboard statistics.

HOW IT WORKS:
------------
The module-level functions are pure folds over a list of alert dicts, so
they can be tested without a database. AnalyticsService does the querying
(always restricted to the caller's farms) and hands the rows to the folds.

TIME BUCKETS:
------------
Buckets come from the alert's detected_at converted to local server time
(tz=None) or to an explicit tzinfo:

    hour   -> "2024-03-10 01:00"
    day    -> "2024-03-10"
    week   -> "Week of 2024-03-10"   (weeks start on Sunday)
    month  -> "2024-03"

Heatmap rows are weekdays with row 0 = Sunday, columns are hours 0-23.
An empty range gives zeros, never an error.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Optional

from zonealert.errors import ValidationError
from zonealert.models import DeviceSort, TimeRange, TrendInterval
from zonealert.storage.base import DocumentStore, Filter

logger = logging.getLogger(__name__)

RANGE_HOURS = {
    TimeRange.TODAY: 24,
    TimeRange.WEEK: 168,
    TimeRange.MONTH: 720,
    TimeRange.YEAR: 8760,
}

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Firestore "in" filters take at most 30 values
IN_FILTER_LIMIT = 30


# =============================================================================
# TIME HELPERS
# =============================================================================

def to_local(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Convert to local server time (tz=None) or to tz. Naive values are UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz) if tz is not None else dt.astimezone()


def sunday_index(dt: datetime) -> int:
    """Weekday with Sunday = 0."""
    return (dt.weekday() + 1) % 7


def bucket_key(dt: datetime, interval: TrendInterval, tz: Optional[tzinfo] = None) -> str:
    local = to_local(dt, tz)
    if interval == TrendInterval.HOUR:
        return local.strftime("%Y-%m-%d %H:00")
    if interval == TrendInterval.DAY:
        return local.strftime("%Y-%m-%d")
    if interval == TrendInterval.WEEK:
        week_start = local.date() - timedelta(days=sunday_index(local))
        return f"Week of {week_start.isoformat()}"
    return local.strftime("%Y-%m")


def range_start(time_range: TimeRange, now: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Start of a dashboard window ending at now."""
    if time_range == TimeRange.TODAY:
        local = to_local(now, tz)
        return local.replace(hour=0, minute=0, second=0, microsecond=0)
    return now - timedelta(hours=RANGE_HOURS[time_range])


def local_day_bounds(day: date, tz: Optional[tzinfo] = None) -> tuple[datetime, datetime]:
    """[start, end) of a local calendar day as aware datetimes."""
    start = datetime.combine(day, time.min)
    end = datetime.combine(day + timedelta(days=1), time.min)
    if tz is not None:
        return start.replace(tzinfo=tz), end.replace(tzinfo=tz)
    return start.astimezone(), end.astimezone()


def _detected(alert: dict) -> Optional[datetime]:
    value = alert.get("detected_at")
    return value if isinstance(value, datetime) else None


def _distances(alerts: list[dict]) -> list[float]:
    return [a["trigger_distance"] for a in alerts if a.get("trigger_distance") is not None]


# =============================================================================
# FOLDS
# =============================================================================

def summarize(alerts: list[dict], hours: int = 0) -> dict[str, Any]:
    """
    Totals for a list of alerts.

    Alerts without a trigger distance (low battery) count toward totals but
    not toward the distance statistics.
    """
    distances = _distances(alerts)
    total = len(alerts)
    return {
        "total_alerts": total,
        "active_alerts": sum(1 for a in alerts if not a.get("is_resolved")),
        "total_devices": len({a.get("sensor_id") for a in alerts if a.get("sensor_id")}),
        "avg_distance": round(sum(distances) / len(distances), 2) if distances else 0,
        "min_distance": min(distances) if distances else 0,
        "max_distance": max(distances) if distances else 0,
        "alert_rate": round(total / hours, 4) if hours else 0,
    }


def trends(alerts: list[dict], interval: TrendInterval, tz: Optional[tzinfo] = None) -> list[dict]:
    buckets: dict[str, dict[str, int]] = defaultdict(lambda: {"total": 0, "active": 0, "resolved": 0})
    for alert in alerts:
        detected = _detected(alert)
        if detected is None:
            continue
        bucket = buckets[bucket_key(detected, interval, tz)]
        bucket["total"] += 1
        bucket["resolved" if alert.get("is_resolved") else "active"] += 1
    return [{"period": key, **counts} for key, counts in sorted(buckets.items())]


def hourly(alerts: list[dict], day: date, tz: Optional[tzinfo] = None) -> list[dict]:
    """24 entries for one local day; alerts on other days are ignored."""
    hours = [{"hour": h, "total": 0, "active": 0, "resolved": 0} for h in range(24)]
    for alert in alerts:
        detected = _detected(alert)
        if detected is None:
            continue
        local = to_local(detected, tz)
        if local.date() != day:
            continue
        slot = hours[local.hour]
        slot["total"] += 1
        slot["resolved" if alert.get("is_resolved") else "active"] += 1
    return hours


def heatmap(alerts: list[dict], tz: Optional[tzinfo] = None) -> list[list[int]]:
    """7x24 counts, row 0 = Sunday."""
    matrix = [[0] * 24 for _ in range(7)]
    for alert in alerts:
        detected = _detected(alert)
        if detected is None:
            continue
        local = to_local(detected, tz)
        matrix[sunday_index(local)][local.hour] += 1
    return matrix


def device_stats(alerts: list[dict], sort_by: DeviceSort = DeviceSort.ALERTS, limit: int = 10) -> list[dict]:
    grouped: dict[str, list[dict]] = defaultdict(list)
    for alert in alerts:
        if alert.get("sensor_id"):
            grouped[alert["sensor_id"]].append(alert)

    devices = []
    for sensor_id, rows in grouped.items():
        seen = [d for d in (_detected(a) for a in rows) if d is not None]
        distances = _distances(rows)
        devices.append({
            "sensor_id": sensor_id,
            "total_alerts": len(rows),
            "active_alerts": sum(1 for a in rows if not a.get("is_resolved")),
            "avg_distance": round(sum(distances) / len(distances), 2) if distances else 0,
            "last_seen": max(seen) if seen else None,
        })

    if sort_by == DeviceSort.LAST_SEEN:
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        devices.sort(key=lambda d: d["last_seen"] or epoch, reverse=True)
    else:
        devices.sort(key=lambda d: d["total_alerts"], reverse=True)
    return devices[:limit]


def device_detail(alerts: list[dict], sensor_id: str) -> dict[str, Any]:
    rows = [a for a in alerts if a.get("sensor_id") == sensor_id]
    stats = summarize(rows)
    seen = [d for d in (_detected(a) for a in rows) if d is not None]
    by_severity: dict[str, int] = defaultdict(int)
    for alert in rows:
        by_severity[alert.get("severity") or "unknown"] += 1
    return {
        "sensor_id": sensor_id,
        "total_alerts": stats["total_alerts"],
        "active_alerts": stats["active_alerts"],
        "resolved_alerts": stats["total_alerts"] - stats["active_alerts"],
        "avg_distance": stats["avg_distance"],
        "min_distance": stats["min_distance"],
        "max_distance": stats["max_distance"],
        "first_seen": min(seen) if seen else None,
        "last_seen": max(seen) if seen else None,
        "by_severity": dict(by_severity),
    }


# =============================================================================
# SERVICE
# =============================================================================

class AnalyticsService:
    """Runs the folds over the caller's alerts."""

    def __init__(self, store: DocumentStore, tz: Optional[tzinfo] = None):
        self.store = store
        self.tz = tz

    async def _alerts(
        self,
        farm_ids: list[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        sensor_id: Optional[str] = None,
    ) -> list[dict]:
        if not farm_ids:
            return []
        if start and end and start > end:
            raise ValidationError("start_date must be before end_date")

        filters: list[Filter] = []
        if start:
            filters.append(("detected_at", ">=", start))
        if end:
            filters.append(("detected_at", "<=", end))
        if sensor_id:
            filters.append(("sensor_id", "==", sensor_id))

        rows = []
        for i in range(0, len(farm_ids), IN_FILTER_LIMIT):
            chunk = farm_ids[i:i + IN_FILTER_LIMIT]
            docs = await self.store.query("alerts", [("farm_id", "in", chunk), *filters])
            rows.extend(doc.to_dict("alert_id") for doc in docs)
        return rows

    async def dashboard(
        self,
        farm_ids: list[str],
        time_range: TimeRange = TimeRange.WEEK,
        sensor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        alerts = await self._alerts(farm_ids, range_start(time_range, now, self.tz), now, sensor_id)
        return {"time_range": time_range.value, **summarize(alerts, RANGE_HOURS[time_range])}

    async def trends(
        self,
        farm_ids: list[str],
        start: datetime,
        end: datetime,
        interval: TrendInterval = TrendInterval.DAY,
        sensor_id: Optional[str] = None,
    ) -> dict[str, Any]:
        alerts = await self._alerts(farm_ids, start, end, sensor_id)
        return {"interval": interval.value, "trends": trends(alerts, interval, self.tz)}

    async def hourly(
        self,
        farm_ids: list[str],
        day: Optional[date] = None,
        sensor_id: Optional[str] = None,
    ) -> dict[str, Any]:
        day = day or to_local(datetime.now(timezone.utc), self.tz).date()
        start, end = local_day_bounds(day, self.tz)
        alerts = await self._alerts(farm_ids, start, end, sensor_id)
        return {"date": day.isoformat(), "hourly": hourly(alerts, day, self.tz)}

    async def heatmap(
        self,
        farm_ids: list[str],
        weeks: int = 4,
        sensor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        alerts = await self._alerts(farm_ids, now - timedelta(weeks=weeks), now, sensor_id)
        matrix = heatmap(alerts, self.tz)
        return {
            "weeks": weeks,
            "total": sum(sum(row) for row in matrix),
            "heatmap": matrix,
            "labels": {"days": DAY_NAMES, "hours": [f"{h}:00" for h in range(24)]},
        }

    async def devices(
        self,
        farm_ids: list[str],
        sort_by: DeviceSort = DeviceSort.ALERTS,
        limit: int = 10,
    ) -> dict[str, Any]:
        alerts = await self._alerts(farm_ids)
        stats = device_stats(alerts, sort_by, limit)
        return {"count": len(stats), "devices": stats}

    async def device(
        self,
        farm_ids: list[str],
        sensor_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict[str, Any]:
        alerts = await self._alerts(farm_ids, start, end, sensor_id)
        return device_detail(alerts, sensor_id)
