# src/glance/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, runs startup maintenance, then:
- starts the daily maintenance loop in a background thread,
- runs the console REPL in the main thread (optional).
"""

from __future__ import annotations

import contextlib
import logging
import signal
import threading
from datetime import datetime

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..logging_setup import setup_logging
from ..maintenance.scheduler import start_maintenance_in_background
from .console import run_console_loop

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.log_dir, console_level=console_level)

    logger.info("Starting %s %s...", settings.app_name, settings.app_version)

    state = create_initial_state(settings=settings)

    started = datetime.now()
    try:
        state.maintenance.run_startup(started)
        state.maintenance.integrity_check()
    except Exception:
        # Startup maintenance is retried by the daily loop.
        logger.exception("Startup maintenance failed.")

    for w in state.maintenance.warnings():
        logger.warning("%s", w.message)

    runner = start_maintenance_in_background(
        state.maintenance,
        interval_seconds=settings.maintenance_interval_seconds,
        last_run_day=started.date(),
    )

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    # SIGTERM is missing on some platforms.
    with contextlib.suppress(ValueError, AttributeError, OSError):
        signal.signal(signal.SIGTERM, _handle_signal)

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled. Running maintenance only. Press Ctrl+C to stop.")
            with contextlib.suppress(KeyboardInterrupt):
                stop_main.wait()
    finally:
        if runner is not None:
            runner.stop()
            runner.join(timeout=10.0)
        state.db.close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
