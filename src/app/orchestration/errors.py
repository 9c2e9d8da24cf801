"""Failure taxonomy for the orchestration pipeline.

Every failure carries a short machine-usable ``kind`` plus a free-text
``message`` so callers can decide the retry granularity:

- AuthRequiredError: no caller identity, raised before any network call.
- OracleFailure: the oracle produced no usable answer. Resubmit the input.
- PipelineBlocked: a well-formed "no" from the gate. Expected, not a fault.
- DispatchError: one dispatch item failed. Re-send that item.
- SyncPartialFailure: aggregate of swallowed per-item sync failures.
"""

from __future__ import annotations

from enum import Enum


class OrchestrationError(Exception):
    """Base class for every pipeline failure.

    Attributes:
        kind: Machine-usable failure kind.
        message: Human-readable explanation.
    """

    kind: str = "ORCHESTRATION_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class AuthRequiredError(OrchestrationError):
    """Raised when processing is attempted without a caller identity."""

    kind = "AUTH_REQUIRED"

    def __init__(self, message: str = "Sign-in required before processing") -> None:
        super().__init__(message)


class OracleFailure(OrchestrationError):
    """Raised when the oracle call fails or its response is unusable.

    Distinct from a semantic block: a block is a valid answer, an
    OracleFailure is the absence of an answer.

    Attributes:
        original_error: The underlying exception, if any.
    """

    kind = "ORACLE_FAILURE"

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
    ) -> None:
        self.original_error = original_error
        super().__init__(message)


class PipelineBlocked(OrchestrationError):
    """Raised when a caller needs a blocked gate result as an exception."""

    kind = "PIPELINE_BLOCKED"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class DispatchErrorKind(str, Enum):
    """Classification of a single failed send attempt."""

    AUTH_EXPIRED = "AUTH_EXPIRED"
    ACCESS_DENIED = "ACCESS_DENIED"
    PROVIDER = "PROVIDER"
    NETWORK = "NETWORK"


class DispatchError(OrchestrationError):
    """Raised by a mail transport when one send attempt fails.

    Attributes:
        error_kind: DispatchErrorKind classification.
        status_code: Provider HTTP status, when one was received.
    """

    kind = "DISPATCH_ERROR"

    def __init__(
        self,
        error_kind: DispatchErrorKind,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.error_kind = error_kind
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.error_kind.value, "message": self.message}

    @classmethod
    def from_status(cls, status_code: int, message: str) -> DispatchError:
        """Map a provider HTTP status onto the dispatch taxonomy."""
        if status_code == 401:
            return cls(DispatchErrorKind.AUTH_EXPIRED, message, status_code)
        if status_code == 403:
            return cls(DispatchErrorKind.ACCESS_DENIED, message, status_code)
        return cls(DispatchErrorKind.PROVIDER, message, status_code)


class SyncPartialFailure(OrchestrationError):
    """Aggregate report of sync items that failed inside a best-effort run."""

    kind = "SYNC_PARTIAL_FAILURE"

    def __init__(self, connector: str, failed: int, attempted: int) -> None:
        self.connector = connector
        self.failed = failed
        self.attempted = attempted
        super().__init__(
            f"{connector} sync failed for {failed} of {attempted} items"
        )


class SessionNotFound(OrchestrationError):
    """Raised when an orchestration session id is unknown."""

    kind = "SESSION_NOT_FOUND"


class DispatchItemNotFound(OrchestrationError):
    """Raised when a dispatch item id is not in the queue."""

    kind = "DISPATCH_ITEM_NOT_FOUND"
