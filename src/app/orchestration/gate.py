"""OrchestrationGate -- decides whether a processing cycle may act.

Evaluation order for one request:

1. No caller identity: raise AuthRequiredError. The oracle is not called.
2. Call the oracle exactly once. OracleFailure propagates unchanged.
3. Check the record, first match wins:
   a. record.blocking_error.is_blocking
   b. record.email_execution_intent.blocking_error.is_blocking
   c. sender.email differs from the caller's email
4. Otherwise the record passes and is fully actionable.

There is no partial pass. A record blocked for any reason is blocked for
email, calendar and tasks alike.

Exports:
    OrchestrationGate: Gate service wrapping an IntelligenceOracle.
    GateResult, Blocked, Passed: Tagged evaluation result.
    evaluate_record: Pure record check used by the gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import structlog

from src.app.core.context import CallerContext, normalize_email
from src.app.core.monitoring import record_gate_outcome
from src.app.orchestration.errors import AuthRequiredError, PipelineBlocked
from src.app.orchestration.oracle import IntelligenceOracle
from src.app.orchestration.schemas import OrchestrationRecord, OrchestrationRequest

logger = structlog.get_logger(__name__)

DEFAULT_BLOCK_REASON = "Processing blocked: transcript unavailable"
DEFAULT_EMAIL_BLOCK_REASON = "Email execution blocked by the orchestration pipeline"
SENDER_MISMATCH_REASON = (
    "Sender mismatch: emails would be sent as {sender} but the signed-in "
    "user is {caller}"
)


# ── Result Types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Blocked:
    """Well-formed refusal carrying a single user-facing reason."""

    reason: str
    record: OrchestrationRecord | None = None

    passed = False

    def raise_for_block(self) -> None:
        raise PipelineBlocked(self.reason)


@dataclass(frozen=True)
class Passed:
    """Record is fully actionable."""

    record: OrchestrationRecord

    passed = True

    def raise_for_block(self) -> None:
        return None


GateResult = Union[Blocked, Passed]


# ── Pure Evaluation ──────────────────────────────────────────────────────────


def evaluate_record(record: OrchestrationRecord, caller_email: str) -> GateResult:
    """Apply the blocking rules to one record.

    The oracle's output is untrusted: a sender that does not match the
    caller blocks even when both blocking flags are clear.

    Args:
        record: Record returned by the oracle.
        caller_email: Authenticated caller email.

    Returns:
        Blocked with the first matching reason, else Passed.
    """
    if record.blocking_error.is_blocking:
        return Blocked(
            reason=record.blocking_error.reason or DEFAULT_BLOCK_REASON,
            record=record,
        )

    intent = record.email_execution_intent
    if intent.blocking_error.is_blocking:
        return Blocked(
            reason=intent.blocking_error.reason or DEFAULT_EMAIL_BLOCK_REASON,
            record=record,
        )

    if normalize_email(intent.sender.email) != normalize_email(caller_email):
        return Blocked(
            reason=SENDER_MISMATCH_REASON.format(
                sender=intent.sender.email or "<empty>",
                caller=caller_email,
            ),
            record=record,
        )

    return Passed(record=record)


# ── Gate Service ─────────────────────────────────────────────────────────────


class OrchestrationGate:
    """Runs the oracle for a caller and applies the blocking rules.

    Args:
        oracle: IntelligenceOracle implementation (stub in tests).
    """

    def __init__(self, oracle: IntelligenceOracle) -> None:
        self._oracle = oracle

    async def evaluate(
        self,
        request: OrchestrationRequest,
        caller: CallerContext | None,
    ) -> GateResult:
        """Evaluate one processing request.

        Args:
            request: The normalized request. Its caller fields are overwritten
                from ``caller`` so the oracle sees the authenticated identity.
            caller: Authenticated caller, or None when signed out.

        Returns:
            Blocked or Passed.

        Raises:
            AuthRequiredError: If ``caller`` is missing or has no email.
            OracleFailure: If the oracle produced no usable record.
        """
        if caller is None or not caller.is_identified:
            record_gate_outcome("auth_required")
            logger.info("gate_auth_required")
            raise AuthRequiredError()

        bound_request = request.model_copy(
            update={
                "caller_email": caller.normalized_email,
                "caller_auth_provider": caller.auth_provider,
            }
        )

        try:
            record = await self._oracle.generate(bound_request)
        except Exception:
            record_gate_outcome("oracle_failure")
            raise

        result = evaluate_record(record, caller.normalized_email)

        if isinstance(result, Blocked):
            record_gate_outcome("blocked")
            logger.info(
                "gate_blocked",
                caller_email=caller.normalized_email,
                reason=result.reason,
            )
        else:
            record_gate_outcome("passed")
            logger.info(
                "gate_passed",
                caller_email=caller.normalized_email,
                email_count=len(record.email_execution_intent.emails),
                action_items=len(record.action_items),
            )
        return result
