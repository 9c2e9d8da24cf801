"""Async HTTP client wrapper for Microsoft Graph (mail, calendar, To Do).

Acts as the signed-in user through their delegated access token. Requests
that fail to connect are retried with tenacity (3 attempts, exponential
backoff 1-10s): a connection error means nothing reached Graph, so a retry
cannot create a duplicate. Timeouts and HTTP error responses are not
retried; they surface as GraphAPIError.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.app.orchestration.schemas import EmailPayload

logger = structlog.get_logger(__name__)

_graph_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(httpx.ConnectError),
    reraise=True,
)


class GraphAPIError(Exception):
    """Raised for a non-2xx Graph response or a transport failure.

    Attributes:
        status_code: HTTP status, or None when no response was received.
        message: Graph's error message or the transport error text.
    """

    def __init__(self, status_code: int | None, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Graph API error ({status_code}): {message}")


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return response.reason_phrase


class GraphClient:
    """Async client for the Microsoft Graph v1.0 REST API.

    Args:
        access_token: Caller's delegated Graph token.
        base_url: Graph root, e.g. https://graph.microsoft.com/v1.0.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://graph.microsoft.com/v1.0",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client for one request."""
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    @_graph_retry
    async def _send(self, method: str, path: str, payload: dict | None) -> httpx.Response:
        async with self._client() as client:
            return await client.request(
                method,
                f"{self._base_url}{path}",
                json=payload,
            )

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._send(method, path, payload)
        except httpx.HTTPError as exc:
            logger.warning("graph.transport_error", path=path, error=str(exc))
            raise GraphAPIError(None, str(exc) or exc.__class__.__name__) from exc

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "graph.request_failed",
                path=path,
                status_code=response.status_code,
                message=message,
            )
            raise GraphAPIError(response.status_code, message)

        if response.status_code == 202 or not response.content:
            return {}
        return response.json()

    async def send_mail(self, payload: EmailPayload) -> None:
        """Send one email through POST /me/sendMail.

        Graph answers 202 Accepted with no body, so there is no message id.
        """
        message = {
            "subject": payload.subject,
            "body": {
                "contentType": payload.body.content_type.value,
                "content": payload.body.content,
            },
            "toRecipients": [{"emailAddress": {"address": payload.to}}],
        }
        await self._request(
            "POST",
            "/me/sendMail",
            {"message": message, "saveToSentItems": True},
        )
        logger.info("graph.mail_sent", to=payload.to)

    async def create_event(self, event: dict[str, Any]) -> dict[str, Any]:
        """Create an event in the caller's default calendar."""
        data = await self._request("POST", "/me/events", event)
        logger.info("graph.event_created", event_id=data.get("id"))
        return data

    async def get_default_todo_list_id(self, preferred_name: str = "Tasks") -> str:
        """Return the id of the caller's default Microsoft To Do list.

        Prefers the list flagged ``defaultList``, then one named
        ``preferred_name``, then the first list.

        Raises:
            GraphAPIError: If the caller has no To Do lists.
        """
        data = await self._request("GET", "/me/todo/lists")
        lists = data.get("value", [])
        for todo_list in lists:
            if todo_list.get("wellknownListName") == "defaultList":
                return todo_list["id"]
        for todo_list in lists:
            if todo_list.get("displayName") == preferred_name:
                return todo_list["id"]
        if lists:
            return lists[0]["id"]
        raise GraphAPIError(404, "No Microsoft To Do lists found")

    async def create_todo_task(self, list_id: str, task: dict[str, Any]) -> dict[str, Any]:
        """Create a task in the given To Do list."""
        data = await self._request("POST", f"/me/todo/lists/{list_id}/tasks", task)
        logger.info("graph.task_created", task_id=data.get("id"))
        return data
