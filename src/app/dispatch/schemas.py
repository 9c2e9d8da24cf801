"""Pydantic schemas for tracked email dispatch."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from src.app.orchestration.errors import DispatchErrorKind
from src.app.orchestration.schemas import EmailBody, EmailPayload


class DispatchStatus(str, Enum):
    """Lifecycle of one dispatch item.

    STAGED -> SENDING -> SENT | FAILED, and FAILED -> SENDING on retry.
    SENT is terminal.
    """

    STAGED = "STAGED"
    SENDING = "SENDING"
    SENT = "SENT"
    FAILED = "FAILED"


SENDABLE_STATUSES = frozenset({DispatchStatus.STAGED, DispatchStatus.FAILED})


class DispatchErrorInfo(BaseModel):
    """Failure recorded on an item for display and retry decisions."""

    kind: DispatchErrorKind
    message: str
    status_code: int | None = None


class DispatchItem(BaseModel):
    """An EmailPayload tracked through its send lifecycle."""

    id: str
    to: str
    subject: str
    body: EmailBody
    status: DispatchStatus = DispatchStatus.STAGED
    attempts: int = 0
    error: DispatchErrorInfo | None = None
    message_id: str | None = None

    @classmethod
    def from_payload(cls, item_id: str, payload: EmailPayload) -> DispatchItem:
        return cls(
            id=item_id,
            to=payload.to or "",
            subject=payload.subject,
            body=payload.body,
        )

    def to_payload(self) -> EmailPayload:
        return EmailPayload(to=self.to, subject=self.subject, body=self.body)

    @property
    def is_sendable(self) -> bool:
        return self.status in SENDABLE_STATUSES


class DispatchSummary(BaseModel):
    """Aggregate outcome of a bulk dispatch."""

    all_sent: bool
    sent: int
    failed: int
    items: list[DispatchItem] = Field(default_factory=list)
