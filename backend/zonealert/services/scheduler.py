"""
Maintenance Scheduler
=====================

Background jobs that keep the denormalized counters honest.

JOBS:
    reconcile_counters  - every RECONCILE_INTERVAL_MINUTES, recompute every
                          counter from the children and fix any drift
    reset_daily         - once a day at DAILY_RESET_HOUR (server local time),
                          zero total_readings_today / alerts_triggered_today

Both run on APScheduler's AsyncIOScheduler inside the API's event loop.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from zonealert.errors import ZoneAlertError
from zonealert.services.counters import CounterMaintainer

logger = logging.getLogger(__name__)

RECONCILE_JOB_ID = "reconcile_counters"
DAILY_RESET_JOB_ID = "reset_daily"


class MaintenanceScheduler:
    def __init__(
        self,
        counters: CounterMaintainer,
        reconcile_minutes: int = 60,
        daily_reset_hour: int = 0,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.counters = counters
        self.reconcile_minutes = reconcile_minutes
        self.daily_reset_hour = daily_reset_hour
        self.scheduler = scheduler or AsyncIOScheduler()

    def start(self) -> None:
        """Register the jobs and start the scheduler (needs a running loop)."""
        if self.reconcile_minutes > 0:
            self.scheduler.add_job(
                self.reconcile_counters,
                trigger=IntervalTrigger(minutes=self.reconcile_minutes),
                id=RECONCILE_JOB_ID,
                replace_existing=True,
            )
        self.scheduler.add_job(
            self.reset_daily,
            trigger=CronTrigger(hour=self.daily_reset_hour, minute=0),
            id=DAILY_RESET_JOB_ID,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            f"[scheduler] started (reconcile every {self.reconcile_minutes} min, "
            f"daily reset at {self.daily_reset_hour:02d}:00)"
        )

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def reconcile_counters(self) -> None:
        try:
            result = await self.counters.reconcile()
        except ZoneAlertError as e:
            logger.error(f"[scheduler] counter reconciliation failed: {e.message}")
            return
        if result["corrections"]:
            logger.warning(f"[scheduler] fixed {len(result['corrections'])} drifted counter(s)")

    async def reset_daily(self) -> None:
        try:
            reset = await self.counters.reset_daily_counters()
        except ZoneAlertError as e:
            logger.error(f"[scheduler] daily counter reset failed: {e.message}")
            return
        logger.info(f"[scheduler] daily counters reset on {reset} sensor(s)")
