"""Provider backends for the sync connectors.

Each backend turns a provider-neutral entry into one provider API call:

- Google Calendar v3 events.insert / Google Tasks v1 tasks.insert
- Microsoft Graph /me/events / /me/todo/lists/{id}/tasks

The resolvers pick a backend from the caller's provider and return None
when the caller holds no token for it, which makes the connector a no-op.
"""

from __future__ import annotations

from datetime import datetime, timezone

from src.app.config import Settings, get_settings
from src.app.core.context import AuthProvider, CallerContext
from src.app.services.graph.client import GraphClient
from src.app.services.gsuite.auth import GoogleServiceFactory
from src.app.services.gsuite.calendar import GoogleCalendarService
from src.app.services.gsuite.tasks import GoogleTasksService
from src.app.sync.base import BackendResolver, CalendarEntry, TaskEntry


def _graph_datetime(value: datetime, tz_name: str) -> dict[str, str]:
    # Graph wants wall-clock time plus a separate zone name
    return {"dateTime": value.replace(tzinfo=None).isoformat(), "timeZone": tz_name}


def _rfc3339_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


# ── Google ───────────────────────────────────────────────────────────────────


class GoogleCalendarBackend:
    def __init__(self, calendar: GoogleCalendarService, access_token: str) -> None:
        self._calendar = calendar
        self._access_token = access_token

    async def create(self, entry: CalendarEntry) -> str:
        body = {
            "summary": entry.title,
            "description": entry.description,
            "start": {"dateTime": entry.start.isoformat(), "timeZone": entry.timezone},
            "end": {"dateTime": entry.end.isoformat(), "timeZone": entry.timezone},
        }
        result = await self._calendar.insert_event(self._access_token, body)
        return result.event_id


class GoogleTasksBackend:
    def __init__(self, tasks: GoogleTasksService, access_token: str) -> None:
        self._tasks = tasks
        self._access_token = access_token

    async def create(self, entry: TaskEntry) -> str:
        body = {
            "title": entry.title,
            "notes": entry.notes,
            "due": _rfc3339_utc(entry.due),
        }
        result = await self._tasks.insert_task(self._access_token, body)
        return result.task_id


# ── Microsoft Graph ──────────────────────────────────────────────────────────


class GraphCalendarBackend:
    def __init__(self, graph: GraphClient) -> None:
        self._graph = graph

    async def create(self, entry: CalendarEntry) -> str:
        event = {
            "subject": entry.title,
            "body": {"contentType": "Text", "content": entry.description},
            "start": _graph_datetime(entry.start, entry.timezone),
            "end": _graph_datetime(entry.end, entry.timezone),
        }
        data = await self._graph.create_event(event)
        return data.get("id", "")


class GraphTasksBackend:
    """Microsoft To Do backend. Resolves the default list once per backend."""

    def __init__(self, graph: GraphClient, list_name: str = "Tasks") -> None:
        self._graph = graph
        self._list_name = list_name
        self._list_id: str | None = None

    async def create(self, entry: TaskEntry) -> str:
        if self._list_id is None:
            self._list_id = await self._graph.get_default_todo_list_id(self._list_name)
        task = {
            "title": entry.title,
            "body": {"contentType": "text", "content": entry.notes},
            "dueDateTime": _graph_datetime(entry.due, entry.timezone),
        }
        data = await self._graph.create_todo_task(self._list_id, task)
        return data.get("id", "")


# ── Resolvers ────────────────────────────────────────────────────────────────


def _graph_client(caller: CallerContext, settings: Settings) -> GraphClient:
    return GraphClient(
        caller.access_token or "",
        base_url=settings.GRAPH_BASE_URL,
        timeout=settings.GRAPH_TIMEOUT,
    )


def calendar_backend_resolver(
    google_factory: GoogleServiceFactory,
    settings: Settings | None = None,
) -> BackendResolver:
    """Build the default calendar resolver."""
    settings = settings or get_settings()
    google_calendar = GoogleCalendarService(google_factory, settings.GOOGLE_CALENDAR_ID)

    def resolve(caller: CallerContext):
        if caller.has_credential_for(AuthProvider.GOOGLE):
            return GoogleCalendarBackend(google_calendar, caller.access_token)
        if caller.has_credential_for(AuthProvider.MICROSOFT):
            return GraphCalendarBackend(_graph_client(caller, settings))
        return None

    return resolve


def tasks_backend_resolver(
    google_factory: GoogleServiceFactory,
    settings: Settings | None = None,
) -> BackendResolver:
    """Build the default tasks resolver."""
    settings = settings or get_settings()
    google_tasks = GoogleTasksService(google_factory, settings.GOOGLE_TASKLIST_ID)

    def resolve(caller: CallerContext):
        if caller.has_credential_for(AuthProvider.GOOGLE):
            return GoogleTasksBackend(google_tasks, caller.access_token)
        if caller.has_credential_for(AuthProvider.MICROSOFT):
            return GraphTasksBackend(
                _graph_client(caller, settings),
                settings.GRAPH_TODO_LIST_NAME,
            )
        return None

    return resolve
