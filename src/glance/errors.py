# src/glance/errors.py

from __future__ import annotations


class GlanceError(Exception):
    """Base class for errors raised by the glance core."""


class SearchIndexMissingError(GlanceError):
    """
    The task_search table is absent.

    Raised instead of swallowing the failure; MaintenanceService.ensure_search_index()
    rebuilds the index from the tasks table.
    """
