"""Shared pieces of the best-effort sync connectors.

A connector projects a passed record's action items into external entries
(calendar events, tasks). Entries are created one at a time in order; a
failure on one entry is logged and counted, never raised, and the run
continues. The result is a plain success count.

There is no dedup: running a connector twice creates every entry twice.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, ConfigDict

from src.app.core.context import CallerContext
from src.app.core.monitoring import record_sync_result
from src.app.orchestration.errors import SyncPartialFailure
from src.app.orchestration.schemas import ActionItem, OrchestrationRecord, SharedMeetingTemplate

logger = structlog.get_logger(__name__)


# ── Entry Models ─────────────────────────────────────────────────────────────


class CalendarEntry(BaseModel):
    """Provider-neutral calendar event."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    start: datetime
    end: datetime
    timezone: str


class TaskEntry(BaseModel):
    """Provider-neutral task."""

    model_config = ConfigDict(frozen=True)

    title: str
    notes: str
    due: datetime
    timezone: str


class SyncReport(BaseModel):
    """Outcome of one connector run."""

    connector: str
    attempted: int = 0
    created: int = 0
    failed: int = 0

    def raise_for_partial(self) -> None:
        """Raise SyncPartialFailure if any entry failed."""
        if self.failed:
            raise SyncPartialFailure(self.connector, self.failed, self.attempted)


class EntryBackend(Protocol):
    """Creates one external entry; raises on failure."""

    async def create(self, entry: BaseModel) -> str:
        ...


BackendResolver = Callable[[CallerContext], "EntryBackend | None"]


# ── Time Helpers ─────────────────────────────────────────────────────────────


def resolve_timezone(name: str) -> tzinfo:
    """ZoneInfo for ``name``; UTC when the name is unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown_timezone_falling_back_to_utc", timezone=name)
        return ZoneInfo("UTC")


def parse_deadline(
    deadline: str | None,
    tz: tzinfo,
    now: datetime,
    fallback_hours: int = 24,
) -> datetime:
    """Parse an ISO 8601 deadline into an aware datetime in ``tz``.

    Naive values are taken as local to ``tz``. Anything unparsable falls
    back to ``now + fallback_hours``.
    """
    if deadline:
        text = deadline.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except (ValueError, TypeError):
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                return parsed.replace(tzinfo=tz)
            return parsed.astimezone(tz)
    return now.astimezone(tz) + timedelta(hours=fallback_hours)


# ── Note Formatting ──────────────────────────────────────────────────────────


def confidence_percent(score: float) -> int:
    """Scores in [0, 1] are fractions; larger scores are already percents."""
    return round(score * 100) if score <= 1 else round(score)


def format_action_notes(item: ActionItem) -> str:
    return (
        f"Owner: {item.owner or 'Unassigned'}\n"
        f"Confidence: {confidence_percent(item.confidence_score)}%"
    )


def format_agenda_notes(template: SharedMeetingTemplate) -> str:
    if template.agenda_items:
        return "\n".join(f"• {agenda}" for agenda in template.agenda_items)
    return template.summary


# ── Connector Base ───────────────────────────────────────────────────────────


class SyncConnector:
    """Template for a best-effort connector.

    Subclasses set ``name`` and implement ``build_entries``.

    Args:
        backend_resolver: Returns the backend for a caller, or None when the
            caller holds no usable credential.
        clock: Returns the current aware datetime (injectable for tests).
    """

    name = "sync"

    def __init__(
        self,
        backend_resolver: BackendResolver,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._resolve_backend = backend_resolver
        self._clock = clock or (lambda: datetime.now().astimezone())

    def build_entries(self, record: OrchestrationRecord, now: datetime) -> list[BaseModel]:
        raise NotImplementedError

    async def sync(self, record: OrchestrationRecord, caller: CallerContext) -> int:
        """Run the connector and return how many entries were created."""
        report = await self.sync_report(record, caller)
        return report.created

    async def sync_report(
        self,
        record: OrchestrationRecord,
        caller: CallerContext,
    ) -> SyncReport:
        """Run the connector and return the full report.

        No-op (empty report) when the caller has no usable credential or the
        record has no shared meeting template.
        """
        report = SyncReport(connector=self.name)

        if record.shared_meeting_template is None:
            logger.info("sync_skipped_no_template", connector=self.name)
            return report

        backend = self._resolve_backend(caller)
        if backend is None:
            logger.info(
                "sync_skipped_no_credential",
                connector=self.name,
                auth_provider=caller.auth_provider,
            )
            return report

        for entry in self.build_entries(record, self._clock()):
            report.attempted += 1
            try:
                entry_id = await backend.create(entry)
            except Exception:
                report.failed += 1
                record_sync_result(self.name, "failed")
                logger.warning(
                    "sync_entry_failed",
                    connector=self.name,
                    title=getattr(entry, "title", None),
                    exc_info=True,
                )
                continue
            report.created += 1
            record_sync_result(self.name, "created")
            logger.debug("sync_entry_created", connector=self.name, entry_id=entry_id)

        logger.info(
            "sync_completed",
            connector=self.name,
            attempted=report.attempted,
            created=report.created,
            failed=report.failed,
        )
        return report
