"""Mail transports used by the dispatch queue.

A transport sends exactly one EmailPayload per call and either returns the
provider's message id or raises DispatchError. Provider failures are
classified here so the queue only ever sees the dispatch taxonomy:

    HTTP 401          -> AUTH_EXPIRED
    HTTP 403          -> ACCESS_DENIED
    other non-2xx     -> PROVIDER (carrying the provider's message)
    no response       -> NETWORK

Exports:
    MailTransport: Protocol implemented by every transport.
    GmailTransport: Gmail users.messages.send with a raw MIME message.
    GraphMailTransport: Microsoft Graph /me/sendMail.
    UnavailableTransport: Fails every send with a fixed reason.
    build_mail_transport: Picks a transport for a caller context.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import httplib2
import structlog
from googleapiclient.errors import HttpError

from src.app.config import Settings, get_settings
from src.app.core.context import AuthProvider, CallerContext
from src.app.dispatch.mime import build_gmail_raw
from src.app.orchestration.errors import DispatchError, DispatchErrorKind
from src.app.orchestration.schemas import EmailPayload
from src.app.services.graph.client import GraphAPIError, GraphClient
from src.app.services.gsuite.auth import GoogleServiceFactory
from src.app.services.gsuite.gmail import GmailService

logger = structlog.get_logger(__name__)


@runtime_checkable
class MailTransport(Protocol):
    """Sends one payload. Raises DispatchError on failure."""

    provider: str

    async def send(self, payload: EmailPayload) -> str:
        ...


def _http_error_message(exc: HttpError) -> str:
    reason = getattr(exc, "reason", None)
    return str(reason or exc)


class GmailTransport:
    """Gmail transport: raw RFC 2822 message, URL-safe base64.

    Args:
        gmail_service: GmailService bound to a GoogleServiceFactory.
        access_token: Caller's Google OAuth token.
    """

    provider = "google"

    def __init__(self, gmail_service: GmailService, access_token: str) -> None:
        self._gmail = gmail_service
        self._access_token = access_token

    async def send(self, payload: EmailPayload) -> str:
        raw = build_gmail_raw(payload)
        try:
            result = await self._gmail.send_raw(raw, self._access_token)
        except HttpError as exc:
            raise DispatchError.from_status(
                exc.resp.status, _http_error_message(exc)
            ) from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise DispatchError(
                DispatchErrorKind.NETWORK,
                str(exc) or exc.__class__.__name__,
            ) from exc
        return result.message_id


class GraphMailTransport:
    """Microsoft Graph transport using the JSON sendMail contract.

    Args:
        graph_client: GraphClient bound to the caller's token.
    """

    provider = "microsoft"

    def __init__(self, graph_client: GraphClient) -> None:
        self._graph = graph_client

    async def send(self, payload: EmailPayload) -> str:
        try:
            await self._graph.send_mail(payload)
        except GraphAPIError as exc:
            if exc.status_code is None:
                raise DispatchError(DispatchErrorKind.NETWORK, exc.message) from exc
            raise DispatchError.from_status(exc.status_code, exc.message) from exc
        return ""


class UnavailableTransport:
    """Transport for callers without a usable mail credential.

    Each send fails with the given kind, so items stay individually
    retryable once the caller re-authenticates.
    """

    provider = "none"

    def __init__(
        self,
        reason: str,
        error_kind: DispatchErrorKind = DispatchErrorKind.AUTH_EXPIRED,
    ) -> None:
        self._reason = reason
        self._error_kind = error_kind

    async def send(self, payload: EmailPayload) -> str:
        raise DispatchError(self._error_kind, self._reason)


def build_mail_transport(
    caller: CallerContext,
    google_factory: GoogleServiceFactory,
    settings: Settings | None = None,
) -> MailTransport:
    """Pick the mail transport matching the caller's provider and token."""
    settings = settings or get_settings()
    provider = caller.provider

    if not caller.access_token:
        return UnavailableTransport("No mail provider access token; sign in again")

    if provider == AuthProvider.GOOGLE:
        return GmailTransport(GmailService(google_factory), caller.access_token)

    if provider == AuthProvider.MICROSOFT:
        return GraphMailTransport(
            GraphClient(
                caller.access_token,
                base_url=settings.GRAPH_BASE_URL,
                timeout=settings.GRAPH_TIMEOUT,
            )
        )

    logger.info("mail_transport_unavailable", auth_provider=caller.auth_provider)
    return UnavailableTransport(
        f"Provider '{caller.auth_provider or 'none'}' cannot send mail; "
        "sign in with Google or Microsoft",
        DispatchErrorKind.ACCESS_DENIED,
    )
