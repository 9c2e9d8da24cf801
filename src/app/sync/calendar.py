"""CalendarSyncConnector -- one event per dated action item.

Only items with both a task and a deadline become events. The event starts
at the parsed deadline (or now + fallback hours when the deadline cannot be
parsed) and lasts one hour by default, in the configured timezone.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from src.app.config import Settings, get_settings
from src.app.orchestration.schemas import OrchestrationRecord
from src.app.sync.base import (
    BackendResolver,
    CalendarEntry,
    SyncConnector,
    format_action_notes,
    parse_deadline,
    resolve_timezone,
)


class CalendarSyncConnector(SyncConnector):
    """Projects action items into calendar events."""

    name = "calendar"

    def __init__(
        self,
        backend_resolver: BackendResolver,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(backend_resolver, clock=clock)
        self._settings = settings or get_settings()

    def build_entries(self, record: OrchestrationRecord, now: datetime) -> list[CalendarEntry]:
        tz_name = self._settings.CALENDAR_TIMEZONE
        tz = resolve_timezone(tz_name)
        duration = timedelta(minutes=self._settings.EVENT_DURATION_MINUTES)

        entries: list[CalendarEntry] = []
        for item in record.action_items:
            if not item.task or not item.deadline:
                continue
            start = parse_deadline(
                item.deadline,
                tz,
                now,
                fallback_hours=self._settings.DEADLINE_FALLBACK_HOURS,
            )
            entries.append(
                CalendarEntry(
                    title=item.task,
                    description=format_action_notes(item),
                    start=start,
                    end=start + duration,
                    timezone=tz_name,
                )
            )
        return entries
