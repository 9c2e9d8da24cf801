"""Email dispatch -- tracked per-recipient sends over Gmail or Microsoft Graph."""

from src.app.dispatch.queue import DispatchQueue
from src.app.dispatch.schemas import (
    DispatchErrorInfo,
    DispatchItem,
    DispatchStatus,
    DispatchSummary,
)

__all__ = [
    "DispatchErrorInfo",
    "DispatchItem",
    "DispatchQueue",
    "DispatchStatus",
    "DispatchSummary",
]
