"""In-process registry of passed orchestration cycles.

A session pairs one passed OrchestrationRecord with the DispatchQueue seeded
from it, so the caller can drive sends and syncs across several requests.
Only a Passed gate result can open a session. Sessions are scoped to the
caller who created them and are not persisted.
"""

from __future__ import annotations

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from src.app.core.context import CallerContext, normalize_email
from src.app.dispatch.queue import DispatchQueue
from src.app.orchestration.errors import SessionNotFound
from src.app.orchestration.gate import Passed
from src.app.orchestration.schemas import OrchestrationRecord

logger = structlog.get_logger(__name__)

MAX_SESSIONS = 500


@dataclass
class OrchestrationSession:
    """One actionable processing cycle."""

    id: str
    owner_email: str
    record: OrchestrationRecord
    queue: DispatchQueue
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionStore:
    """Bounded in-memory session registry; oldest sessions are evicted first."""

    def __init__(self, max_sessions: int = MAX_SESSIONS) -> None:
        self._sessions: OrderedDict[str, OrchestrationSession] = OrderedDict()
        self._max_sessions = max_sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def open(self, result: Passed, caller: CallerContext) -> OrchestrationSession:
        """Open a session for a passed record and seed its dispatch queue."""
        if not isinstance(result, Passed):
            raise TypeError("Only a passed gate result can open a session")

        session = OrchestrationSession(
            id=str(uuid.uuid4()),
            owner_email=caller.normalized_email,
            record=result.record,
            queue=DispatchQueue.from_record(result.record),
        )
        self._sessions[session.id] = session

        while len(self._sessions) > self._max_sessions:
            evicted_id, _ = self._sessions.popitem(last=False)
            logger.info("orchestration_session_evicted", session_id=evicted_id)

        logger.info(
            "orchestration_session_opened",
            session_id=session.id,
            dispatch_items=len(session.queue),
        )
        return session

    def get(self, session_id: str, caller: CallerContext) -> OrchestrationSession:
        """Look up a session owned by the caller.

        Raises:
            SessionNotFound: If the id is unknown or belongs to someone else.
        """
        session = self._sessions.get(session_id)
        if session is None or session.owner_email != normalize_email(caller.email):
            raise SessionNotFound(f"Orchestration session not found: {session_id}")
        return session
