"""Shared fixtures for orchestration tests.

Provides:
- Canned OrchestrationRecord factories (passed, blocked, email-blocked)
- StubOracle returning a canned record and counting calls
- Recording / failing mail transports for the dispatch queue
- Caller contexts for Google and Microsoft sign-ins
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from src.app.core.context import CallerContext
from src.app.orchestration.errors import DispatchError, DispatchErrorKind
from src.app.orchestration.schemas import (
    EmailPayload,
    OrchestrationRecord,
    OrchestrationRequest,
)

CALLER_EMAIL = "ana@acme.com"


# ── Record Factories ─────────────────────────────────────────────────────────


def make_record_dict(
    sender: str = CALLER_EMAIL,
    blocking: bool = False,
    blocking_reason: str | None = None,
    email_blocking: bool = False,
    email_blocking_reason: str | None = None,
    recipients: list[str | None] | None = None,
    action_items: list[dict[str, Any]] | None = None,
    with_template: bool = True,
) -> dict[str, Any]:
    """Build the JSON-shaped answer an oracle would return."""
    if recipients is None:
        recipients = ["bob@acme.com", "cy@acme.com"]
    if action_items is None:
        action_items = [
            {
                "task": "Send pricing deck",
                "owner": "Bob",
                "deadline": "2024-06-03T09:00:00Z",
                "confidence_score": 0.9,
            },
            {
                "task": "Book follow-up",
                "owner": "Cy",
                "deadline": None,
                "confidence_score": 0.6,
            },
        ]

    record: dict[str, Any] = {
        "blocking_error": {"is_blocking": blocking, "reason": blocking_reason},
        "next_allowed_step": "TRANSCRIPT_READY",
        "email_execution_intent": {
            "intent": "SEND_MEETING_SUMMARY_EMAILS",
            "sender": {"email": sender, "auth_provider": "google"},
            "emails": [
                {
                    "to": to,
                    "subject": "Q3 Planning recap",
                    "body": {"contentType": "HTML", "content": f"<p>Hi {to}</p>"},
                }
                for to in recipients
            ],
            "blocking_error": {
                "is_blocking": email_blocking,
                "reason": email_blocking_reason,
            },
        },
        "next_actions": ["Review the recap"],
        "meeting_metadata": {
            "meeting_title": "Q3 Planning",
            "attendees": [{"name": "Bob", "email": "bob@acme.com"}],
            "meeting_date": "2024-06-01",
        },
    }
    if with_template:
        record["shared_meeting_template"] = {
            "summary": "Quarterly planning",
            "agenda_items": ["Budget", "Hiring"],
            "key_discussions": ["Headcount"],
            "decisions": ["Freeze travel"],
            "action_items": action_items,
        }
    return record


def make_record(**kwargs: Any) -> OrchestrationRecord:
    return OrchestrationRecord.model_validate(make_record_dict(**kwargs))


def make_payload(to: str = "bob@acme.com", subject: str = "Recap") -> EmailPayload:
    return EmailPayload.model_validate(
        {"to": to, "subject": subject, "body": {"contentType": "HTML", "content": "<p>Hi</p>"}}
    )


# ── Stubs ────────────────────────────────────────────────────────────────────


class StubOracle:
    """Oracle returning a fixed record (or raising) and recording requests."""

    def __init__(
        self,
        record: OrchestrationRecord | None = None,
        error: Exception | None = None,
    ) -> None:
        self.record = record or make_record()
        self.error = error
        self.requests: list[OrchestrationRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: OrchestrationRequest) -> OrchestrationRecord:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.record


class RecordingTransport:
    """Mail transport that records payloads and fails chosen recipients.

    Args:
        failures: Map of recipient address to the DispatchErrorKind to raise.
        delay: Seconds to sleep inside send (exercises in-flight guards).
    """

    provider = "stub"

    def __init__(
        self,
        failures: dict[str, DispatchErrorKind] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.failures = dict(failures or {})
        self.delay = delay
        self.sent: list[EmailPayload] = []

    @property
    def calls(self) -> int:
        return len(self.sent)

    async def send(self, payload: EmailPayload) -> str:
        self.sent.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        kind = self.failures.get(payload.to or "")
        if kind is not None:
            raise DispatchError(kind, f"{kind.value} for {payload.to}")
        return f"msg-{len(self.sent)}"


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def google_caller() -> CallerContext:
    return CallerContext(email=CALLER_EMAIL, auth_provider="google", access_token="g-token")


@pytest.fixture
def microsoft_caller() -> CallerContext:
    return CallerContext(email=CALLER_EMAIL, auth_provider="microsoft", access_token="m-token")


@pytest.fixture
def passed_record() -> OrchestrationRecord:
    return make_record()


@pytest.fixture
def stub_oracle() -> StubOracle:
    return StubOracle()


@pytest.fixture
def caller_email() -> str:
    return CALLER_EMAIL


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def record_dict_factory():
    return make_record_dict


@pytest.fixture
def payload_factory():
    return make_payload


@pytest.fixture
def oracle_factory():
    return StubOracle


@pytest.fixture
def transport_factory():
    return RecordingTransport
