"""DispatchQueue -- tracked, individually retryable per-recipient sends.

Owns the DispatchItem list seeded from a passed OrchestrationRecord and is
the only writer of item status:

    STAGED --send--> SENDING --ok--> SENT (terminal)
                             --err-> FAILED --send/retry--> SENDING

At most one attempt per item is ever in flight. The status check and the
SENDING transition happen with no await in between, so a second concurrent
send_one on the same item sees SENDING and is rejected without touching the
network.

send_all walks items in seed order, awaits each send before starting the
next, never stops on a failure and never retries automatically. Items
already SENT are skipped, so calling it again is safe.
"""

from __future__ import annotations

import asyncio

import structlog

from src.app.core.monitoring import record_dispatch_attempt
from src.app.dispatch.schemas import (
    DispatchErrorInfo,
    DispatchItem,
    DispatchStatus,
    DispatchSummary,
)
from src.app.dispatch.transports import MailTransport
from src.app.orchestration.errors import (
    DispatchError,
    DispatchErrorKind,
    DispatchItemNotFound,
)
from src.app.orchestration.schemas import OrchestrationRecord

logger = structlog.get_logger(__name__)


class DispatchQueue:
    """Ordered dispatch items plus the send operations over them.

    Args:
        items: Items in dispatch order.
        transport: Default MailTransport. A per-call transport overrides it,
            which lets a caller retry with a refreshed access token.
    """

    def __init__(
        self,
        items: list[DispatchItem],
        transport: MailTransport | None = None,
    ) -> None:
        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            raise ValueError("Dispatch item ids must be unique")
        self._items: dict[str, DispatchItem] = {item.id: item for item in items}
        self._order: list[str] = ids
        self._transport = transport

    @classmethod
    def from_record(
        cls,
        record: OrchestrationRecord,
        transport: MailTransport | None = None,
    ) -> DispatchQueue:
        """Seed a queue from a record's email intent.

        Payloads are projected 1:1 in the oracle's order. A payload without a
        recipient address belongs to an attendee with no email and is
        skipped. Ids are ``email-<n>`` over the kept payloads.
        """
        items: list[DispatchItem] = []
        for payload in record.email_execution_intent.emails:
            if not payload.to or not payload.to.strip():
                logger.info("dispatch_payload_skipped_no_address", subject=payload.subject)
                continue
            items.append(DispatchItem.from_payload(f"email-{len(items)}", payload))

        logger.info("dispatch_queue_seeded", item_count=len(items))
        return cls(items, transport=transport)

    # ── Read Access ──────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._order)

    @property
    def items(self) -> list[DispatchItem]:
        """Snapshot copies of the items in dispatch order."""
        return [self._items[item_id].model_copy(deep=True) for item_id in self._order]

    def get(self, item_id: str) -> DispatchItem:
        """Snapshot copy of one item.

        Raises:
            DispatchItemNotFound: If the id is not in the queue.
        """
        return self._require(item_id).model_copy(deep=True)

    @property
    def all_sent(self) -> bool:
        """True iff the queue is non-empty and every item is SENT."""
        return bool(self._order) and all(
            self._items[item_id].status == DispatchStatus.SENT for item_id in self._order
        )

    def summary(self) -> DispatchSummary:
        items = self.items
        return DispatchSummary(
            all_sent=self.all_sent,
            sent=sum(1 for item in items if item.status == DispatchStatus.SENT),
            failed=sum(1 for item in items if item.status == DispatchStatus.FAILED),
            items=items,
        )

    # ── Mutation ─────────────────────────────────────────────────────────────

    def _require(self, item_id: str) -> DispatchItem:
        item = self._items.get(item_id)
        if item is None:
            raise DispatchItemNotFound(f"Dispatch item not found: {item_id}")
        return item

    def _transition(
        self,
        item: DispatchItem,
        status: DispatchStatus,
        error: DispatchErrorInfo | None = None,
        message_id: str | None = None,
    ) -> None:
        previous = item.status
        item.status = status
        if status == DispatchStatus.SENDING:
            item.attempts += 1
            item.error = None
        elif status == DispatchStatus.SENT:
            item.message_id = message_id
            item.error = None
        elif status == DispatchStatus.FAILED:
            item.error = error
        logger.debug(
            "dispatch_item_transition",
            item_id=item.id,
            from_status=previous.value,
            to_status=status.value,
        )

    async def send_one(
        self,
        item_id: str,
        transport: MailTransport | None = None,
    ) -> DispatchItem:
        """Send one item if it is STAGED or FAILED.

        A SENDING or SENT item is rejected: it is returned unchanged and no
        network call is made.

        Args:
            item_id: Queue item id.
            transport: Optional transport overriding the queue default.

        Returns:
            Snapshot of the item after the attempt (or after rejection).

        Raises:
            DispatchItemNotFound: If the id is not in the queue.
            RuntimeError: If no transport is available.
        """
        item = self._require(item_id)
        if not item.is_sendable:
            logger.info(
                "dispatch_send_rejected",
                item_id=item_id,
                status=item.status.value,
            )
            return item.model_copy(deep=True)

        active = transport or self._transport
        if active is None:
            raise RuntimeError("DispatchQueue has no mail transport")

        self._transition(item, DispatchStatus.SENDING)
        payload = item.to_payload()

        try:
            message_id = await active.send(payload)
        except DispatchError as exc:
            self._transition(
                item,
                DispatchStatus.FAILED,
                error=DispatchErrorInfo(
                    kind=exc.error_kind,
                    message=exc.message,
                    status_code=exc.status_code,
                ),
            )
            record_dispatch_attempt(active.provider, "failed")
            logger.warning(
                "dispatch_item_failed",
                item_id=item_id,
                to=item.to,
                error_kind=exc.error_kind.value,
                error=exc.message,
            )
        except asyncio.CancelledError:
            # The outcome at the provider is unknown; leave the item retryable
            self._transition(
                item,
                DispatchStatus.FAILED,
                error=DispatchErrorInfo(
                    kind=DispatchErrorKind.NETWORK,
                    message="Send was cancelled before the provider answered",
                ),
            )
            record_dispatch_attempt(active.provider, "failed")
            logger.warning("dispatch_item_cancelled", item_id=item_id, to=item.to)
            raise
        except Exception as exc:
            # Unclassified transport bug: still a per-item failure
            self._transition(
                item,
                DispatchStatus.FAILED,
                error=DispatchErrorInfo(
                    kind=DispatchErrorKind.PROVIDER,
                    message=str(exc) or exc.__class__.__name__,
                ),
            )
            record_dispatch_attempt(active.provider, "failed")
            logger.error(
                "dispatch_item_failed_unexpectedly",
                item_id=item_id,
                to=item.to,
                exc_info=True,
            )
        else:
            self._transition(item, DispatchStatus.SENT, message_id=message_id or None)
            record_dispatch_attempt(active.provider, "sent")
            logger.info(
                "dispatch_item_sent",
                item_id=item_id,
                to=item.to,
                attempts=item.attempts,
            )

        return item.model_copy(deep=True)

    async def retry(
        self,
        item_id: str,
        transport: MailTransport | None = None,
    ) -> DispatchItem:
        """Explicitly re-send a FAILED item.

        Only FAILED items are retried; any other status is rejected the same
        way send_one rejects in-flight or sent items.
        """
        item = self._require(item_id)
        if item.status != DispatchStatus.FAILED:
            logger.info(
                "dispatch_retry_rejected",
                item_id=item_id,
                status=item.status.value,
            )
            return item.model_copy(deep=True)
        return await self.send_one(item_id, transport=transport)

    async def send_all(self, transport: MailTransport | None = None) -> DispatchSummary:
        """Send every non-SENT item in seed order, one at a time.

        Returns:
            DispatchSummary; ``all_sent`` is True iff every item ended SENT.
        """
        logger.info("dispatch_all_started", item_count=len(self._order))
        for item_id in list(self._order):
            if self._items[item_id].status == DispatchStatus.SENT:
                continue
            await self.send_one(item_id, transport=transport)

        summary = self.summary()
        logger.info(
            "dispatch_all_completed",
            all_sent=summary.all_sent,
            sent=summary.sent,
            failed=summary.failed,
        )
        return summary
