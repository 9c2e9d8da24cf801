"""Intelligence Oracle adapter -- request in, validated OrchestrationRecord out.

The oracle is an external generation service. Its reasoning is opaque; only
the shape of its answer matters here. Everything downstream depends on the
IntelligenceOracle protocol, so tests substitute a stub returning canned
records and never touch a live model.

LLMIntelligenceOracle uses the instructor + litellm pattern shared with the
rest of the service: the response_model is OrchestrationRecord, so a missing
``blocking_error``, ``email_execution_intent`` or ``next_allowed_step`` fails
validation and surfaces as OracleFailure.

Exports:
    IntelligenceOracle: Protocol every oracle implementation satisfies.
    LLMIntelligenceOracle: LiteLLM-backed implementation.
    SYSTEM_INSTRUCTION: Fixed system instruction sent with every request.
    build_prompt: Renders the per-request user prompt.
    parse_record: Validates a raw JSON answer into an OrchestrationRecord.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import structlog
from pydantic import ValidationError

from src.app.orchestration.errors import OracleFailure
from src.app.orchestration.schemas import OrchestrationRecord, OrchestrationRequest

logger = structlog.get_logger(__name__)


# ── System Instruction ───────────────────────────────────────────────────────

SYSTEM_INSTRUCTION = (
    "You are a post-meeting Intelligence, Enforcement and Email Orchestration "
    "service.\n\n"
    "1. TRANSCRIPT ENFORCEMENT\n"
    "- All audio/video must be converted to text before any extraction.\n"
    "- NO TRANSCRIPT = NO MEETING PROCESSING. If no transcript text is "
    "present, set blocking_error.is_blocking to true, give a reason that "
    "names the missing transcript, and set next_allowed_step to \"NONE\".\n"
    "- When blocking on media input, fill transcription_diagnostic with the "
    "failing stage and the required fixes.\n\n"
    "2. EMAIL ORCHESTRATION\n"
    "- Prepare one executable email per attendee who has an email address. "
    "Skip attendees without an address.\n"
    "- Emails are sent FROM the logged-in user. sender.email MUST equal the "
    "logged-in user email provided. If it is missing, set "
    "email_execution_intent.blocking_error.is_blocking to true.\n"
    "- Each body (HTML) contains the meeting title, a bulleted agenda, key "
    "decisions, that attendee's own to-dos and next steps. Never include "
    "tasks owned by other attendees in a personalized email.\n\n"
    "3. SHARED TEMPLATE\n"
    "- Fill shared_meeting_template with summary, agenda items, key "
    "discussions, decisions and action items (task, owner, deadline as ISO "
    "8601 when known, confidence_score between 0 and 1).\n"
    "- Fill meeting_metadata with the title, attendees and date."
)


def build_prompt(request: OrchestrationRequest) -> str:
    """Render the user prompt for one orchestration request."""
    sender = request.caller_email or "MISSING"
    return (
        "LOGGED-IN USER CONTEXT:\n"
        f"Email: {sender}\n"
        f"Provider: {request.caller_auth_provider or 'NONE'}\n"
        f"Input type: {'media' if request.is_media else 'text'}\n\n"
        "INPUT DATA:\n"
        f"{request.raw_input}\n\n"
        "TASK:\n"
        "Generate authenticated email execution payloads for all meeting "
        "attendees found in the input. Each email is sent FROM "
        f"{request.caller_email or 'unknown'} and contains only that "
        "attendee's tasks. If the sender email is missing, execution MUST be "
        "blocked."
    )


def parse_record(raw: str | bytes | dict[str, Any]) -> OrchestrationRecord:
    """Validate a raw oracle answer into an OrchestrationRecord.

    Args:
        raw: JSON text/bytes or an already-decoded dict.

    Returns:
        Validated OrchestrationRecord.

    Raises:
        OracleFailure: If the answer is empty, not JSON, or misses required
            fields.
    """
    if raw is None or (isinstance(raw, (str, bytes)) and not raw.strip()):
        raise OracleFailure("Oracle returned an empty response")
    try:
        if isinstance(raw, dict):
            return OrchestrationRecord.model_validate(raw)
        return OrchestrationRecord.model_validate_json(raw)
    except ValidationError as exc:
        missing = sorted(
            {".".join(str(p) for p in err["loc"]) for err in exc.errors()}
        )
        raise OracleFailure(
            f"Oracle response failed validation: {', '.join(missing)}",
            original_error=exc,
        ) from exc


# ── Protocol ─────────────────────────────────────────────────────────────────


@runtime_checkable
class IntelligenceOracle(Protocol):
    """Anything that turns an OrchestrationRequest into a record."""

    async def generate(self, request: OrchestrationRequest) -> OrchestrationRecord:
        ...


# ── LLM Implementation ───────────────────────────────────────────────────────


class LLMIntelligenceOracle:
    """Oracle backed by a structured LLM completion.

    Args:
        llm_client: Object exposing ``async extract(response_model, messages,
            metadata)``; typically StructuredLLMClient.
    """

    def __init__(self, llm_client: Any) -> None:
        self._llm = llm_client

    async def generate(self, request: OrchestrationRequest) -> OrchestrationRecord:
        """Call the generation service once and validate its answer.

        Raises:
            OracleFailure: On transport errors, missing configuration, or an
                answer that does not validate.
        """
        messages = [
            {"role": "system", "content": SYSTEM_INSTRUCTION},
            {"role": "user", "content": build_prompt(request)},
        ]

        logger.info(
            "oracle_request_started",
            caller_email=request.caller_email,
            is_media=request.is_media,
            input_length=len(request.raw_input),
        )

        try:
            result = await self._llm.extract(
                OrchestrationRecord,
                messages,
                metadata={"caller_email": request.caller_email or ""},
            )
        except OracleFailure:
            raise
        except Exception as exc:
            logger.warning("oracle_request_failed", error=str(exc), exc_info=True)
            raise OracleFailure(
                f"Intelligence oracle unavailable: {exc}",
                original_error=exc,
            ) from exc

        if result is None:
            raise OracleFailure("Oracle returned no structured answer")

        # Providers occasionally hand back a dict or JSON text instead of the model
        record = result if isinstance(result, OrchestrationRecord) else parse_record(result)

        logger.info(
            "oracle_request_completed",
            is_blocking=record.blocking_error.is_blocking,
            next_allowed_step=record.next_allowed_step.value,
            email_count=len(record.email_execution_intent.emails),
        )
        return record
