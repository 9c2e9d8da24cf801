"""Pydantic v2 schemas for the orchestration domain.

Defines the request sent to the Intelligence Oracle and the structured
OrchestrationRecord it returns. Field names follow the oracle's snake_case
JSON contract, except the email body ``contentType`` which keeps the
provider-compatible spelling on the wire.

Only ``blocking_error``, ``next_allowed_step`` and ``email_execution_intent``
are required on a record. The remaining diagnostic blocks are optional so a
terse but well-formed oracle answer still validates.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ── Enums ────────────────────────────────────────────────────────────────────


class NextAllowedStep(str, Enum):
    """Furthest pipeline step the record permits."""

    NONE = "NONE"
    TRANSCRIPT_READY = "TRANSCRIPT_READY"


class BodyContentType(str, Enum):
    """Content type of an email body."""

    HTML = "HTML"
    TEXT = "Text"


class MediaKind(str, Enum):
    """Kind of a media asset accepted for transcription."""

    AUDIO = "audio"
    VIDEO = "video"


# ── Request ──────────────────────────────────────────────────────────────────


class OrchestrationRequest(BaseModel):
    """One user-initiated processing action, sent to the oracle once."""

    model_config = ConfigDict(frozen=True)

    raw_input: str
    caller_email: str | None = None
    caller_auth_provider: str | None = None
    is_media: bool = False


class MediaAsset(BaseModel):
    """Normalized media file reference from a storage listing."""

    model_config = ConfigDict(frozen=True)

    kind: MediaKind
    id: str
    name: str
    mime_type: str | None = None
    size_bytes: int | None = None


# ── Record Building Blocks ───────────────────────────────────────────────────


class BlockingError(BaseModel):
    """A blocking flag with an optional human-readable reason."""

    model_config = ConfigDict(frozen=True)

    is_blocking: bool
    reason: str | None = None


class EmailBody(BaseModel):
    """Body of a recipient-specific email."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content_type: BodyContentType = Field(
        default=BodyContentType.HTML, alias="contentType"
    )
    content: str

    @field_validator("content_type", mode="before")
    @classmethod
    def _normalize_content_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return BodyContentType.TEXT if value.lower() == "text" else BodyContentType.HTML
        return value


class EmailPayload(BaseModel):
    """One recipient-specific email produced by the oracle."""

    model_config = ConfigDict(frozen=True)

    to: str | None = None
    subject: str
    body: EmailBody


class EmailSender(BaseModel):
    """Sender identity the oracle claims the emails come from."""

    model_config = ConfigDict(frozen=True)

    email: str
    auth_provider: str | None = None


class EmailExecutionIntent(BaseModel):
    """Email dispatch intent derived from the meeting input."""

    model_config = ConfigDict(frozen=True)

    intent: str = "SEND_MEETING_SUMMARY_EMAILS"
    sender: EmailSender
    emails: list[EmailPayload] = Field(default_factory=list)
    blocking_error: BlockingError


class ActionItem(BaseModel):
    """A task extracted from the meeting, read-only for sync connectors."""

    model_config = ConfigDict(frozen=True)

    task: str
    owner: str | None = None
    deadline: str | None = None
    confidence_score: float = 0.0


class SharedMeetingTemplate(BaseModel):
    """Shared meeting summary used by emails and sync connectors."""

    model_config = ConfigDict(frozen=True)

    summary: str = ""
    agenda_items: list[str] = Field(default_factory=list)
    key_discussions: list[str] = Field(default_factory=list)
    decisions: list[str] = Field(default_factory=list)
    action_items: list[ActionItem] = Field(default_factory=list)


class Attendee(BaseModel):
    """Meeting attendee. Attendees without an email receive nothing."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str | None = None


class MeetingMetadata(BaseModel):
    """Title, attendees and date of the meeting."""

    model_config = ConfigDict(frozen=True)

    meeting_title: str | None = None
    attendees: list[Attendee] = Field(default_factory=list)
    meeting_date: str | None = None


# ── Diagnostics ──────────────────────────────────────────────────────────────


class AuthFix(BaseModel):
    """Oracle's view of the caller's sign-in state."""

    model_config = ConfigDict(frozen=True)

    signin_required: bool = False
    email_captured: bool = True
    auth_provider: str | None = None
    blocking_reason: str | None = None


class AudioPipelineStatus(BaseModel):
    """Progress of the media-to-transcript pipeline."""

    model_config = ConfigDict(frozen=True)

    input_received: bool = True
    file_type: MediaKind | None = None
    audio_validated: bool = False
    audio_extracted: bool = False
    transcription_triggered: bool = False
    transcription_completed: bool = False
    transcript_available: bool = False


class TranscriptionDiagnosis(BaseModel):
    """Per-stage checks of the transcription pipeline."""

    model_config = ConfigDict(frozen=True)

    audio_access_ok: bool = False
    format_supported: bool = False
    audio_extracted: bool = False
    transcription_called: bool = False
    transcription_response_valid: bool = False


class RequiredFix(BaseModel):
    """One corrective step suggested by the diagnostic."""

    model_config = ConfigDict(frozen=True)

    step: str
    action: str


class TranscriptStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    available: bool = False
    length: int = 0


class TranscriptionDiagnostic(BaseModel):
    """Diagnostic report explaining where transcription stopped."""

    model_config = ConfigDict(frozen=True)

    diagnosis: TranscriptionDiagnosis = Field(default_factory=TranscriptionDiagnosis)
    failure_point: str | None = None
    root_cause: str | None = None
    required_fix: list[RequiredFix] = Field(default_factory=list)
    transcript_status: TranscriptStatus = Field(default_factory=TranscriptStatus)
    pipeline_state: Literal["BLOCKED", "READY_FOR_EXTRACTION"] = "BLOCKED"


class OutlookFix(BaseModel):
    """Readiness of the caller's mail and calendar integration."""

    model_config = ConfigDict(frozen=True)

    outlook_ready: bool = False
    missing_prerequisites: list[str] = Field(default_factory=list)
    calendar_execution_ready: bool = False
    email_execution_ready: bool = False


# ── Record ───────────────────────────────────────────────────────────────────


class OrchestrationRecord(BaseModel):
    """Structured answer of the Intelligence Oracle.

    A record whose top-level blocking flag is set is never actionable. The
    before-validator forces ``next_allowed_step`` to NONE in that case so no
    downstream reader can see a contradictory combination.
    """

    model_config = ConfigDict(frozen=True)

    blocking_error: BlockingError
    next_allowed_step: NextAllowedStep
    email_execution_intent: EmailExecutionIntent

    auth_fix: AuthFix | None = None
    audio_pipeline_status: AudioPipelineStatus | None = None
    transcript_preview: str | None = None
    transcription_diagnostic: TranscriptionDiagnostic | None = None
    outlook_fix: OutlookFix | None = None
    next_actions: list[str] = Field(default_factory=list)
    shared_meeting_template: SharedMeetingTemplate | None = None
    meeting_metadata: MeetingMetadata | None = None

    @model_validator(mode="before")
    @classmethod
    def _blocked_records_allow_nothing(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        blocking = data.get("blocking_error")
        if isinstance(blocking, BlockingError):
            is_blocking = blocking.is_blocking
        elif isinstance(blocking, dict):
            is_blocking = bool(blocking.get("is_blocking"))
        else:
            return data
        if is_blocking and "next_allowed_step" in data:
            return {**data, "next_allowed_step": NextAllowedStep.NONE}
        return data

    @property
    def action_items(self) -> list[ActionItem]:
        if self.shared_meeting_template is None:
            return []
        return list(self.shared_meeting_template.action_items)

    @property
    def meeting_title(self) -> str:
        if self.meeting_metadata and self.meeting_metadata.meeting_title:
            return self.meeting_metadata.meeting_title
        return "Meeting Summary"
