"""Tests for mail transports and their provider error classification.

Gmail failures are simulated with googleapiclient HttpError instances and
Graph failures with httpx.MockTransport, so no network is touched.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httplib2
import httpx
import pytest
from googleapiclient.errors import HttpError

from src.app.core.context import CallerContext
from src.app.dispatch.mime import decode_raw_message
from src.app.dispatch.transports import (
    GmailTransport,
    GraphMailTransport,
    UnavailableTransport,
    build_mail_transport,
)
from src.app.orchestration.errors import DispatchError, DispatchErrorKind
from src.app.services.graph.client import GraphClient
from src.app.services.gsuite.models import SentEmailResult


def _http_error(status: int, message: str = "boom") -> HttpError:
    resp = httplib2.Response({"status": status})
    resp.reason = message
    content = json.dumps({"error": {"code": status, "message": message}}).encode()
    return HttpError(resp, content)


def _graph_client(handler) -> GraphClient:
    return GraphClient(
        "m-token",
        base_url="https://graph.test/v1.0",
        transport=httpx.MockTransport(handler),
    )


# ── Gmail ────────────────────────────────────────────────────────────────────


class TestGmailTransport:
    @pytest.mark.asyncio
    async def test_sends_encoded_raw_message(self, payload_factory):
        gmail = MagicMock()
        gmail.send_raw = AsyncMock(
            return_value=SentEmailResult(message_id="gm-1", thread_id="t-1", label_ids=["SENT"])
        )
        transport = GmailTransport(gmail, "g-token")

        message_id = await transport.send(payload_factory(to="bob@acme.com", subject="Recap"))

        assert message_id == "gm-1"
        raw, token = gmail.send_raw.call_args.args
        assert token == "g-token"
        decoded = decode_raw_message(raw)
        assert decoded.startswith("To: bob@acme.com\r\nSubject: Recap\r\n")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "kind"),
        [
            (401, DispatchErrorKind.AUTH_EXPIRED),
            (403, DispatchErrorKind.ACCESS_DENIED),
            (500, DispatchErrorKind.PROVIDER),
            (429, DispatchErrorKind.PROVIDER),
        ],
    )
    async def test_http_status_mapping(self, payload_factory, status, kind):
        gmail = MagicMock()
        gmail.send_raw = AsyncMock(side_effect=_http_error(status, "Provider said no"))
        transport = GmailTransport(gmail, "g-token")

        with pytest.raises(DispatchError) as exc_info:
            await transport.send(payload_factory())

        assert exc_info.value.error_kind == kind
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_provider_message_is_preserved(self, payload_factory):
        gmail = MagicMock()
        gmail.send_raw = AsyncMock(side_effect=_http_error(400, "Invalid To header"))
        transport = GmailTransport(gmail, "g-token")

        with pytest.raises(DispatchError) as exc_info:
            await transport.send(payload_factory())

        assert "Invalid To header" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_socket_error_is_network(self, payload_factory):
        gmail = MagicMock()
        gmail.send_raw = AsyncMock(side_effect=ConnectionResetError("reset by peer"))
        transport = GmailTransport(gmail, "g-token")

        with pytest.raises(DispatchError) as exc_info:
            await transport.send(payload_factory())

        assert exc_info.value.error_kind == DispatchErrorKind.NETWORK
        assert exc_info.value.status_code is None


# ── Microsoft Graph ──────────────────────────────────────────────────────────


class TestGraphMailTransport:
    @pytest.mark.asyncio
    async def test_send_mail_contract(self, payload_factory):
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(202)

        transport = GraphMailTransport(_graph_client(handler))
        message_id = await transport.send(payload_factory(to="bob@acme.com", subject="Recap"))

        assert message_id == ""
        assert captured["url"] == "https://graph.test/v1.0/me/sendMail"
        assert captured["auth"] == "Bearer m-token"
        assert captured["body"] == {
            "message": {
                "subject": "Recap",
                "body": {"contentType": "HTML", "content": "<p>Hi</p>"},
                "toRecipients": [{"emailAddress": {"address": "bob@acme.com"}}],
            },
            "saveToSentItems": True,
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "kind"),
        [
            (401, DispatchErrorKind.AUTH_EXPIRED),
            (403, DispatchErrorKind.ACCESS_DENIED),
            (503, DispatchErrorKind.PROVIDER),
        ],
    )
    async def test_http_status_mapping(self, payload_factory, status, kind):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                status,
                json={"error": {"code": "Denied", "message": "Graph refused"}},
            )

        transport = GraphMailTransport(_graph_client(handler))

        with pytest.raises(DispatchError) as exc_info:
            await transport.send(payload_factory())

        assert exc_info.value.error_kind == kind
        assert exc_info.value.message == "Graph refused"

    @pytest.mark.asyncio
    async def test_timeout_is_network(self, payload_factory):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        transport = GraphMailTransport(_graph_client(handler))

        with pytest.raises(DispatchError) as exc_info:
            await transport.send(payload_factory())

        assert exc_info.value.error_kind == DispatchErrorKind.NETWORK


# ── Selection ────────────────────────────────────────────────────────────────


class TestBuildMailTransport:
    def test_google_caller_gets_gmail(self, google_caller):
        transport = build_mail_transport(google_caller, MagicMock())
        assert isinstance(transport, GmailTransport)
        assert transport.provider == "google"

    def test_microsoft_caller_gets_graph(self, microsoft_caller):
        transport = build_mail_transport(microsoft_caller, MagicMock())
        assert isinstance(transport, GraphMailTransport)

    @pytest.mark.asyncio
    async def test_missing_token_fails_as_auth_expired(self, payload_factory):
        caller = CallerContext(email="ana@acme.com", auth_provider="google")
        transport = build_mail_transport(caller, MagicMock())

        assert isinstance(transport, UnavailableTransport)
        with pytest.raises(DispatchError) as exc_info:
            await transport.send(payload_factory())
        assert exc_info.value.error_kind == DispatchErrorKind.AUTH_EXPIRED

    @pytest.mark.asyncio
    async def test_email_provider_cannot_send(self, payload_factory):
        caller = CallerContext(email="ana@acme.com", auth_provider="email", access_token="x")
        transport = build_mail_transport(caller, MagicMock())

        with pytest.raises(DispatchError) as exc_info:
            await transport.send(payload_factory())
        assert exc_info.value.error_kind == DispatchErrorKind.ACCESS_DENIED
