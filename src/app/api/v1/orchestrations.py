"""REST endpoints for post-meeting orchestration.

Processing endpoints run the gate and, for a passed record, open a session.
Session endpoints drive the dispatch queue (send one, retry one, send all)
and the best-effort calendar/task sync. Sends are always explicit: nothing
is dispatched as a side effect of processing.

Error kinds map to HTTP status in src/app/main.py:
AUTH_REQUIRED 401, PIPELINE_BLOCKED 409, ORACLE_FAILURE 502, *_NOT_FOUND 404.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.app.api.deps import (
    get_calendar_connector,
    get_caller_context,
    get_gate,
    get_google_factory,
    get_session_store,
    get_tasks_connector,
    require_caller,
)
from src.app.core.context import CallerContext
from src.app.dispatch.schemas import DispatchItem, DispatchSummary
from src.app.dispatch.transports import build_mail_transport
from src.app.orchestration.errors import AuthRequiredError, PipelineBlocked
from src.app.orchestration.gate import Blocked, OrchestrationGate
from src.app.orchestration.intake import (
    build_import_request,
    build_media_request,
    build_text_request,
    normalize_media_listing,
)
from src.app.orchestration.schemas import (
    MeetingMetadata,
    NextAllowedStep,
    OrchestrationRequest,
    SharedMeetingTemplate,
)
from src.app.orchestration.sessions import OrchestrationSession, SessionStore
from src.app.sync.base import SyncConnector, SyncReport

router = APIRouter(prefix="/orchestrations", tags=["orchestrations"])


# ── Request / Response Schemas ───────────────────────────────────────────────


class TextInputRequest(BaseModel):
    input: str = Field(min_length=1)
    is_media: bool = False


class MediaInputRequest(BaseModel):
    """Raw storage listing plus an optional pick; defaults to the first asset."""

    files: list[dict[str, Any]] = Field(default_factory=list)
    file_id: str | None = None


class ImportInputRequest(BaseModel):
    url: str = Field(min_length=1)


class SessionResponse(BaseModel):
    """Passed processing cycle with its dispatch queue."""

    session_id: str
    next_allowed_step: str
    meeting_metadata: MeetingMetadata | None = None
    shared_meeting_template: SharedMeetingTemplate | None = None
    next_actions: list[str] = Field(default_factory=list)
    all_sent: bool
    dispatch: list[DispatchItem] = Field(default_factory=list)


def _session_response(session: OrchestrationSession) -> SessionResponse:
    record = session.record
    return SessionResponse(
        session_id=session.id,
        next_allowed_step=record.next_allowed_step.value,
        meeting_metadata=record.meeting_metadata,
        shared_meeting_template=record.shared_meeting_template,
        next_actions=record.next_actions,
        all_sent=session.queue.all_sent,
        dispatch=session.queue.items,
    )


def _blocked_response(result: Blocked) -> JSONResponse:
    record = result.record
    content: dict[str, Any] = {
        "error": PipelineBlocked(result.reason).to_dict(),
        "next_allowed_step": NextAllowedStep.NONE.value,
    }
    if record is not None:
        if record.transcription_diagnostic is not None:
            content["transcription_diagnostic"] = record.transcription_diagnostic.model_dump(
                mode="json"
            )
        content["next_actions"] = record.next_actions
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=content)


async def _process(
    request: OrchestrationRequest,
    caller: CallerContext | None,
    gate: OrchestrationGate,
    store: SessionStore,
) -> JSONResponse | SessionResponse:
    result = await gate.evaluate(request, caller)
    if isinstance(result, Blocked):
        return _blocked_response(result)
    if caller is None:
        raise AuthRequiredError()
    session = store.open(result, caller)
    return _session_response(session)


# ── Processing ───────────────────────────────────────────────────────────────


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SessionResponse)
async def process_text(
    body: TextInputRequest,
    caller: CallerContext | None = Depends(get_caller_context),
    gate: OrchestrationGate = Depends(get_gate),
    store: SessionStore = Depends(get_session_store),
):
    """Process a pasted transcript."""
    try:
        request = build_text_request(body.input, is_media=body.is_media)
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return await _process(request, caller, gate, store)


@router.post("/media", status_code=status.HTTP_201_CREATED, response_model=SessionResponse)
async def process_media(
    body: MediaInputRequest,
    caller: CallerContext | None = Depends(get_caller_context),
    gate: OrchestrationGate = Depends(get_gate),
    store: SessionStore = Depends(get_session_store),
):
    """Process a media asset chosen from a storage listing."""
    assets = normalize_media_listing(body.files)
    if body.file_id is not None:
        assets = [asset for asset in assets if asset.id == body.file_id]
    if not assets:
        raise HTTPException(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No audio or video asset found in the listing",
        )
    try:
        request = build_media_request(assets[0])
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return await _process(request, caller, gate, store)


@router.post("/import", status_code=status.HTTP_201_CREATED, response_model=SessionResponse)
async def process_import(
    body: ImportInputRequest,
    caller: CallerContext | None = Depends(get_caller_context),
    gate: OrchestrationGate = Depends(get_gate),
    store: SessionStore = Depends(get_session_store),
):
    """Process an externally hosted recording or document."""
    try:
        request = build_import_request(body.url)
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return await _process(request, caller, gate, store)


# ── Session & Dispatch ───────────────────────────────────────────────────────


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    caller: CallerContext = Depends(require_caller),
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    """Current state of a session and its dispatch queue."""
    return _session_response(store.get(session_id, caller))


@router.post("/{session_id}/dispatch", response_model=DispatchSummary)
async def dispatch_all(
    session_id: str,
    caller: CallerContext = Depends(require_caller),
    store: SessionStore = Depends(get_session_store),
    google_factory: Any = Depends(get_google_factory),
) -> DispatchSummary:
    """Send every item that is not yet SENT, in order."""
    session = store.get(session_id, caller)
    transport = build_mail_transport(caller, google_factory)
    return await session.queue.send_all(transport=transport)


@router.post("/{session_id}/dispatch/{item_id}", response_model=DispatchItem)
async def dispatch_one(
    session_id: str,
    item_id: str,
    caller: CallerContext = Depends(require_caller),
    store: SessionStore = Depends(get_session_store),
    google_factory: Any = Depends(get_google_factory),
) -> DispatchItem:
    """Send one STAGED or FAILED item."""
    session = store.get(session_id, caller)
    transport = build_mail_transport(caller, google_factory)
    return await session.queue.send_one(item_id, transport=transport)


@router.post("/{session_id}/dispatch/{item_id}/retry", response_model=DispatchItem)
async def retry_one(
    session_id: str,
    item_id: str,
    caller: CallerContext = Depends(require_caller),
    store: SessionStore = Depends(get_session_store),
    google_factory: Any = Depends(get_google_factory),
) -> DispatchItem:
    """Retry one FAILED item."""
    session = store.get(session_id, caller)
    transport = build_mail_transport(caller, google_factory)
    return await session.queue.retry(item_id, transport=transport)


# ── Sync ─────────────────────────────────────────────────────────────────────


async def _run_sync(
    connector: SyncConnector,
    session_id: str,
    caller: CallerContext,
    store: SessionStore,
) -> SyncReport:
    session = store.get(session_id, caller)
    return await connector.sync_report(session.record, caller)


@router.post("/{session_id}/sync/calendar", response_model=SyncReport)
async def sync_calendar(
    session_id: str,
    caller: CallerContext = Depends(require_caller),
    store: SessionStore = Depends(get_session_store),
    connector: SyncConnector = Depends(get_calendar_connector),
) -> SyncReport:
    """Create calendar events for dated action items."""
    return await _run_sync(connector, session_id, caller, store)


@router.post("/{session_id}/sync/tasks", response_model=SyncReport)
async def sync_tasks(
    session_id: str,
    caller: CallerContext = Depends(require_caller),
    store: SessionStore = Depends(get_session_store),
    connector: SyncConnector = Depends(get_tasks_connector),
) -> SyncReport:
    """Create a summary task plus one task per action item."""
    return await _run_sync(connector, session_id, caller, store)
