"""Tests for the Microsoft Graph client.

Uses httpx.MockTransport for every request. Connection-retry tests swap the
tenacity wait for wait_none() so they run instantly.
"""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest
from tenacity import wait_none

from src.app.services.graph.client import GraphAPIError, GraphClient


def _client(handler) -> GraphClient:
    return GraphClient(
        "m-token",
        base_url="https://graph.test/v1.0/",
        transport=httpx.MockTransport(handler),
    )


class TestRequests:
    @pytest.mark.asyncio
    async def test_create_event_returns_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/v1.0/me/events"
            return httpx.Response(201, json={"id": "evt-1"})

        data = await _client(handler).create_event({"subject": "Sync"})
        assert data == {"id": "evt-1"}

    @pytest.mark.asyncio
    async def test_create_todo_task_path(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(201, json={"id": "task-1"})

        data = await _client(handler).create_todo_task("list-9", {"title": "Do it"})

        assert data["id"] == "task-1"
        assert seen == ["/v1.0/me/todo/lists/list-9/tasks"]

    @pytest.mark.asyncio
    async def test_error_without_json_body_uses_text(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="upstream exploded")

        with pytest.raises(GraphAPIError) as exc_info:
            await _client(handler).create_event({})

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "upstream exploded"


class TestDefaultTodoList:
    @pytest.mark.asyncio
    async def test_prefers_well_known_default_list(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "value": [
                        {"id": "a", "displayName": "Groceries"},
                        {"id": "b", "displayName": "Tasks", "wellknownListName": "defaultList"},
                    ]
                },
            )

        assert await _client(handler).get_default_todo_list_id() == "b"

    @pytest.mark.asyncio
    async def test_falls_back_to_named_then_first(self):
        def named(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"value": [{"id": "a", "displayName": "Work"}, {"id": "b", "displayName": "Tasks"}]},
            )

        def unnamed(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"value": [{"id": "z", "displayName": "Work"}]})

        assert await _client(named).get_default_todo_list_id("Tasks") == "b"
        assert await _client(unnamed).get_default_todo_list_id("Tasks") == "z"

    @pytest.mark.asyncio
    async def test_no_lists_raises_404(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"value": []})

        with pytest.raises(GraphAPIError) as exc_info:
            await _client(handler).get_default_todo_list_id()
        assert exc_info.value.status_code == 404


class TestConnectRetry:
    @pytest.mark.asyncio
    async def test_connect_error_is_retried(self):
        attempts = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["count"] += 1
            if attempts["count"] < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(201, json={"id": "evt-2"})

        with patch.object(GraphClient._send.retry, "wait", wait_none()):
            data = await _client(handler).create_event({"subject": "x"})

        assert data == {"id": "evt-2"}
        assert attempts["count"] == 3

    @pytest.mark.asyncio
    async def test_connect_error_exhausts_to_network_failure(self):
        attempts = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["count"] += 1
            raise httpx.ConnectError("refused", request=request)

        with patch.object(GraphClient._send.retry, "wait", wait_none()):
            with pytest.raises(GraphAPIError) as exc_info:
                await _client(handler).create_event({})

        assert exc_info.value.status_code is None
        assert attempts["count"] == 3

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(self):
        attempts = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["count"] += 1
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GraphAPIError):
            await _client(handler).create_event({})

        assert attempts["count"] == 1
