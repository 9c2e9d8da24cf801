"""Async Google Tasks v1 service for creating task entries."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from src.app.services.gsuite.auth import GoogleServiceFactory
from src.app.services.gsuite.models import CreatedTaskResult

logger = structlog.get_logger(__name__)


class GoogleTasksService:
    """Google Tasks API v1 wrapper.

    Args:
        service_factory: GoogleServiceFactory shared with Gmail/Calendar.
        tasklist_id: Target task list, "@default" by default.
    """

    def __init__(
        self,
        service_factory: GoogleServiceFactory,
        tasklist_id: str = "@default",
    ) -> None:
        self._factory = service_factory
        self._tasklist_id = tasklist_id

    async def insert_task(
        self,
        access_token: str,
        task: dict[str, Any],
    ) -> CreatedTaskResult:
        """Insert one task into the configured list."""
        service = self._factory.get_tasks_service(access_token)

        def _insert() -> dict:
            return (
                service.tasks()
                .insert(tasklist=self._tasklist_id, body=task)
                .execute()
            )

        logger.info("inserting_task", tasklist_id=self._tasklist_id, title=task.get("title"))
        result = await asyncio.to_thread(_insert)

        return CreatedTaskResult(
            task_id=result.get("id", ""),
            tasklist_id=self._tasklist_id,
        )
