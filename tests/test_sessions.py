"""Tests for the in-process orchestration session store."""

from __future__ import annotations

import pytest

from src.app.core.context import CallerContext
from src.app.dispatch.schemas import DispatchStatus
from src.app.orchestration.errors import SessionNotFound
from src.app.orchestration.gate import Blocked, Passed
from src.app.orchestration.sessions import SessionStore


class TestSessionStore:
    def test_open_seeds_queue(self, passed_record, google_caller):
        store = SessionStore()
        session = store.open(Passed(passed_record), google_caller)

        assert session.owner_email == "ana@acme.com"
        assert len(session.queue) == 2
        assert all(item.status == DispatchStatus.STAGED for item in session.queue.items)
        assert store.get(session.id, google_caller) is session

    def test_blocked_result_cannot_open(self, passed_record, google_caller):
        with pytest.raises(TypeError):
            SessionStore().open(Blocked("nope", passed_record), google_caller)

    def test_owner_match_is_case_insensitive(self, passed_record, google_caller):
        store = SessionStore()
        session = store.open(Passed(passed_record), google_caller)

        assert store.get(session.id, CallerContext(email=" ANA@acme.com")) is session

    def test_other_caller_cannot_see_session(self, passed_record, google_caller):
        store = SessionStore()
        session = store.open(Passed(passed_record), google_caller)

        with pytest.raises(SessionNotFound):
            store.get(session.id, CallerContext(email="eve@acme.com"))

    def test_oldest_sessions_are_evicted(self, passed_record, google_caller):
        store = SessionStore(max_sessions=2)
        first = store.open(Passed(passed_record), google_caller)
        store.open(Passed(passed_record), google_caller)
        store.open(Passed(passed_record), google_caller)

        assert len(store) == 2
        with pytest.raises(SessionNotFound):
            store.get(first.id, google_caller)
