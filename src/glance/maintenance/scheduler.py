# src/glance/maintenance/scheduler.py

from __future__ import annotations

"""
Daily maintenance loop.

A small polling loop that:
- notices when the local calendar day changes,
- runs the daily maintenance job once per new day,
- keeps going after failures (the next tick retries).

The job itself lives behind the MaintenanceRunner port.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

from ..core.ports import MaintenanceRunner

logger = logging.getLogger(__name__)


async def run_maintenance_scheduler(
        runner: MaintenanceRunner,
        *,
        interval_seconds: float = 60.0,
        now: Callable[[], datetime] = datetime.now,
        last_run_day: date | None = None,
) -> None:
    """
    Every interval_seconds:
    - read the local clock
    - if the day differs from the last successful run, call runner.run_daily(now)

    last_run_day seeds the loop (startup maintenance already covered today).
    To stop the scheduler, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    done_day = last_run_day

    while True:
        current = now()
        if current.date() != done_day:
            try:
                # Blocking SQLite work stays off the event loop.
                await asyncio.to_thread(runner.run_daily, current)
                done_day = current.date()
                logger.info("Daily maintenance done for %s", done_day.isoformat())
            except Exception:
                logger.exception("Daily maintenance failed; retrying next tick")

        await asyncio.sleep(sleep_s)


@dataclass
class MaintenanceBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    task: asyncio.Task[None]

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.task.cancel)
        except RuntimeError:
            # Loop already closed.
            logger.debug("Maintenance loop already stopped.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_maintenance_in_background(
        runner: MaintenanceRunner,
        *,
        interval_seconds: float = 60.0,
        last_run_day: date | None = None,
) -> MaintenanceBackgroundRunner | None:
    """
    Run the maintenance loop on its own event loop in a daemon thread.

    The console REPL blocks on input(), so the loop cannot share the main thread.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def _thread_main() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        task = loop.create_task(
            run_maintenance_scheduler(runner, interval_seconds=interval_seconds, last_run_day=last_run_day)
        )
        holder["loop"] = loop
        holder["task"] = task
        ready.set()

        try:
            loop.run_until_complete(task)
        except asyncio.CancelledError:
            logger.info("Maintenance scheduler stopped.")
        finally:
            loop.close()

    t = threading.Thread(target=_thread_main, name="glance-maintenance", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    task = holder.get("task")
    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(task, asyncio.Task):
        logger.error("Maintenance thread did not initialize properly.")
        return None

    logger.info("Maintenance background thread started.")
    return MaintenanceBackgroundRunner(thread=t, loop=loop, task=task)
