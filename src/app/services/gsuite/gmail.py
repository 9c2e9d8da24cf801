"""Async Gmail API service for sending pre-built raw messages.

All Google API calls are wrapped in asyncio.to_thread() to avoid
blocking the event loop.
"""

from __future__ import annotations

import asyncio

import structlog

from src.app.services.gsuite.auth import GoogleServiceFactory
from src.app.services.gsuite.models import SentEmailResult

logger = structlog.get_logger(__name__)


class GmailService:
    """Async wrapper around Gmail users.messages.send."""

    def __init__(self, service_factory: GoogleServiceFactory) -> None:
        self._factory = service_factory

    async def send_raw(self, raw: str, access_token: str) -> SentEmailResult:
        """Send a base64url-encoded RFC 2822 message as the token's user.

        Args:
            raw: Encoded message from build_gmail_raw.
            access_token: Caller's Google OAuth token.

        Returns:
            SentEmailResult with message_id, thread_id, and label_ids.

        Raises:
            googleapiclient.errors.HttpError: On a non-2xx API response.
        """
        service = self._factory.get_gmail_service(access_token)

        def _send() -> dict:
            return (
                service.users()
                .messages()
                .send(userId="me", body={"raw": raw})
                .execute()
            )

        logger.info("sending_gmail_message", raw_length=len(raw))
        result = await asyncio.to_thread(_send)

        return SentEmailResult(
            message_id=result.get("id", ""),
            thread_id=result.get("threadId", ""),
            label_ids=result.get("labelIds", []),
        )
