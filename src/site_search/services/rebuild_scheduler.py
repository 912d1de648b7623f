"""Periodic suggestion snapshot rebuilds.

The schedule is a safety net alongside rebuild-on-save: the first run fires
after a short delay, later runs follow the cron expression of the chosen
frequency. Rebuilds run in a worker thread so the event loop stays free.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import suppress
from datetime import datetime, timedelta
import logging
from typing import Any

import anyio
from cron_converter import Cron

from site_search.domain.errors import InvalidInputError
from site_search.domain.model import ensure_utc, utcnow
from site_search.search.suggestions import SuggestionEngine


logger = logging.getLogger(__name__)

MANUAL_FREQUENCY = "manual"
CRON_SCHEDULES: dict[str, str] = {
    "daily": "0 0 * * *",
    "weekly": "0 0 * * 0",
    "monthly": "0 0 1 * *",
}


class SuggestionRebuildScheduler:
    """Own the single periodic rebuild trigger of the suggestion engine."""

    def __init__(
        self,
        engine: SuggestionEngine,
        *,
        initial_delay_seconds: float = 300,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.engine = engine
        self.initial_delay_seconds = initial_delay_seconds
        self._clock = clock
        self._frequency: str | None = None
        self._cron: Cron | None = None
        self._scheduler_task: asyncio.Task | None = None
        self._next_rebuild_at: datetime | None = None

        self._total_rebuilds = 0
        self._errors = 0
        self._last_rebuild_at: datetime | None = None
        self._last_result: dict[str, Any] | None = None

    @property
    def frequency(self) -> str | None:
        return self._frequency

    @property
    def is_scheduled(self) -> bool:
        return self._scheduler_task is not None and not self._scheduler_task.done()

    @property
    def next_rebuild_at(self) -> datetime | None:
        return self._next_rebuild_at if self.is_scheduled else None

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "frequency": self._frequency,
            "scheduled": self.is_scheduled,
            "total_rebuilds": self._total_rebuilds,
            "last_rebuild_at": self._datetime_to_iso(self._last_rebuild_at),
            "next_rebuild_at": self._datetime_to_iso(self.next_rebuild_at),
            "errors": self._errors,
            "last_result": self._last_result,
        }

    async def schedule_rebuild(self, frequency: str = "weekly") -> bool:
        """Register the periodic rebuild unless one is already scheduled.

        Returns:
            True if a new schedule was registered, False if one already exists.

        Raises:
            InvalidInputError: for a frequency other than daily, weekly or monthly.
        """
        if frequency not in CRON_SCHEDULES:
            raise InvalidInputError(f"Unknown rebuild frequency '{frequency}'")
        if self.is_scheduled:
            logger.debug("Suggestion rebuild already scheduled (%s)", self._frequency)
            return False

        self._frequency = frequency
        self._cron = Cron(CRON_SCHEDULES[frequency])
        first_run = self._clock() + timedelta(seconds=self.initial_delay_seconds)
        self._next_rebuild_at = first_run
        self._scheduler_task = asyncio.create_task(self._run_scheduler_loop(first_run))
        logger.info("Suggestion rebuild scheduled %s, first run at %s", frequency, first_run.isoformat())
        return True

    async def reschedule_rebuild(self, frequency: str = "weekly") -> bool:
        """Replace the current schedule.

        ``manual`` clears the schedule without registering a new one. An
        unknown frequency clears the schedule and returns False.
        """
        await self.clear_scheduled_rebuild()
        if frequency == MANUAL_FREQUENCY:
            return True
        if frequency not in CRON_SCHEDULES:
            logger.warning("Refusing unknown suggestion rebuild frequency '%s'", frequency)
            return False
        return await self.schedule_rebuild(frequency)

    async def clear_scheduled_rebuild(self) -> None:
        task, self._scheduler_task = self._scheduler_task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        self._next_rebuild_at = None
        self._frequency = None
        self._cron = None

    async def stop(self) -> None:
        await self.clear_scheduled_rebuild()

    async def trigger_rebuild(self) -> dict[str, Any]:
        """Run one rebuild now in a worker thread and record the outcome."""
        try:
            count = await anyio.to_thread.run_sync(self.engine.build_from_content)
        except Exception as exc:
            logger.error("Suggestion rebuild failed: %s", exc, exc_info=True)
            result = {"success": False, "message": f"Suggestion rebuild error: {exc}"}
        else:
            result = {"success": True, "suggestions": count}
        self._record_result(result)
        return result

    async def _run_scheduler_loop(self, first_run: datetime) -> None:
        next_run = first_run
        try:
            while True:
                self._next_rebuild_at = next_run
                wait_seconds = (next_run - self._clock()).total_seconds()
                if wait_seconds > 0:
                    await asyncio.sleep(wait_seconds)
                await self.trigger_rebuild()
                cron = self._cron
                if cron is None:
                    logger.info("Suggestion rebuild schedule cleared, stopping loop")
                    return
                next_run = ensure_utc(cron.schedule(start_date=self._clock()).next())
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Suggestion rebuild loop failed", exc_info=True)
            self._record_result({"success": False, "message": f"Suggestion rebuild loop failed: {exc}"})

    def _record_result(self, result: dict[str, Any]) -> None:
        self._last_result = result
        if result.get("success"):
            self._total_rebuilds += 1
            self._last_rebuild_at = self._clock()
        else:
            self._errors += 1

    def _datetime_to_iso(self, value: datetime | None) -> str | None:
        if value is None:
            return None
        return ensure_utc(value).isoformat()
