"""Async Google Calendar v3 service for creating events.

Events are written to the caller's own calendar using their OAuth token.
Blocking client calls run in asyncio.to_thread().
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from src.app.services.gsuite.auth import GoogleServiceFactory
from src.app.services.gsuite.models import CreatedEventResult

logger = structlog.get_logger(__name__)


class GoogleCalendarService:
    """Google Calendar API v3 wrapper.

    Args:
        service_factory: GoogleServiceFactory shared with Gmail/Tasks.
        calendar_id: Target calendar, "primary" by default.
    """

    def __init__(
        self,
        service_factory: GoogleServiceFactory,
        calendar_id: str = "primary",
    ) -> None:
        self._factory = service_factory
        self._calendar_id = calendar_id

    async def insert_event(
        self,
        access_token: str,
        event: dict[str, Any],
    ) -> CreatedEventResult:
        """Insert one event.

        Args:
            access_token: Caller's Google OAuth token.
            event: Calendar v3 event resource body.

        Returns:
            CreatedEventResult with the new event id.
        """
        service = self._factory.get_calendar_service(access_token)

        def _insert() -> dict:
            return (
                service.events()
                .insert(calendarId=self._calendar_id, body=event)
                .execute()
            )

        logger.info(
            "inserting_calendar_event",
            calendar_id=self._calendar_id,
            summary=event.get("summary"),
        )
        result = await asyncio.to_thread(_insert)

        return CreatedEventResult(
            event_id=result.get("id", ""),
            html_link=result.get("htmlLink", ""),
        )
