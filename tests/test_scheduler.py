"""Tests for the maintenance jobs."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from zonealert.errors import DependencyError
from zonealert.services.scheduler import DAILY_RESET_JOB_ID, RECONCILE_JOB_ID, MaintenanceScheduler


@pytest.fixture
def counters():
    counters = MagicMock()
    counters.reconcile = AsyncMock(return_value={"checked": 3, "corrections": []})
    counters.reset_daily_counters = AsyncMock(return_value=2)
    return counters


class TestMaintenanceScheduler:

    @pytest.mark.asyncio
    async def test_start_registers_both_jobs(self, counters):
        scheduler = MaintenanceScheduler(counters, reconcile_minutes=15, daily_reset_hour=3)

        scheduler.start()
        try:
            assert scheduler.scheduler.get_job(RECONCILE_JOB_ID) is not None
            assert scheduler.scheduler.get_job(DAILY_RESET_JOB_ID) is not None
        finally:
            scheduler.shutdown()

        assert not scheduler.scheduler.running

    @pytest.mark.asyncio
    async def test_reconcile_can_be_disabled(self, counters):
        scheduler = MaintenanceScheduler(counters, reconcile_minutes=0)

        scheduler.start()
        try:
            assert scheduler.scheduler.get_job(RECONCILE_JOB_ID) is None
            assert scheduler.scheduler.get_job(DAILY_RESET_JOB_ID) is not None
        finally:
            scheduler.shutdown()

    def test_shutdown_before_start_is_a_noop(self, counters):
        MaintenanceScheduler(counters).shutdown()

    @pytest.mark.asyncio
    async def test_jobs_call_the_counter_maintainer(self, counters):
        scheduler = MaintenanceScheduler(counters)

        await scheduler.reconcile_counters()
        await scheduler.reset_daily()

        counters.reconcile.assert_awaited_once()
        counters.reset_daily_counters.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_job_failures_are_logged_not_raised(self, counters):
        counters.reconcile.side_effect = DependencyError("Firestore unavailable")
        counters.reset_daily_counters.side_effect = DependencyError("Firestore unavailable")
        scheduler = MaintenanceScheduler(counters)

        await scheduler.reconcile_counters()
        await scheduler.reset_daily()
