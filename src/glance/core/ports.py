# src/glance/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the background jobs.

The maintenance loop depends on a Protocol instead of MaintenanceService, which
keeps it testable without SQLite.
"""

from datetime import datetime
from typing import Protocol


class MaintenanceRunner(Protocol):
    """What the daily maintenance loop needs from the maintenance subsystem."""

    def run_daily(self, now: datetime) -> None: ...
