"""TasksSyncConnector -- a meeting summary task plus one task per action item.

The summary task is titled with the meeting title and carries the agenda as
bullets. Every action item becomes a task whose notes give the owner and
the confidence score. All tasks are due now.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from src.app.config import Settings, get_settings
from src.app.orchestration.schemas import OrchestrationRecord
from src.app.sync.base import (
    BackendResolver,
    SyncConnector,
    TaskEntry,
    format_action_notes,
    format_agenda_notes,
    resolve_timezone,
)


class TasksSyncConnector(SyncConnector):
    """Projects the meeting summary and action items into tasks."""

    name = "tasks"

    def __init__(
        self,
        backend_resolver: BackendResolver,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(backend_resolver, clock=clock)
        self._settings = settings or get_settings()

    def build_entries(self, record: OrchestrationRecord, now: datetime) -> list[TaskEntry]:
        template = record.shared_meeting_template
        if template is None:
            return []

        tz_name = self._settings.CALENDAR_TIMEZONE
        due = now.astimezone(resolve_timezone(tz_name))

        entries = [
            TaskEntry(
                title=record.meeting_title,
                notes=format_agenda_notes(template),
                due=due,
                timezone=tz_name,
            )
        ]
        for item in template.action_items:
            if not item.task:
                continue
            entries.append(
                TaskEntry(
                    title=item.task,
                    notes=format_action_notes(item),
                    due=due,
                    timezone=tz_name,
                )
            )
        return entries
