"""Best-effort calendar and task sync of a passed record's action items."""

from src.app.sync.base import SyncReport
from src.app.sync.calendar import CalendarSyncConnector
from src.app.sync.tasks import TasksSyncConnector

__all__ = [
    "CalendarSyncConnector",
    "SyncReport",
    "TasksSyncConnector",
]
