"""
Batch processor for Booksy notification webhooks.

Each webhook call carries a list of notifications for one salon. They are
processed one at a time, in order:

1. Idempotency gate (only when the notification has an event id)
2. Parse the body
3. Resolve service, employee and client
4. Create the booking

Parse and resolution failures park the notification in the triage queue.
Database failures are recorded on the item. Neither stops the batch.
"""

from booksy_ingest.core.database import Database
from booksy_ingest.core.exceptions import StoreError, TriageableError
from booksy_ingest.core.logging import bind_context, clear_context, get_logger
from booksy_ingest.core.models import (
    BatchResult,
    IncomingNotification,
    ItemResult,
    ParsedCandidate,
)
from booksy_ingest.parsers import NotificationParser
from booksy_ingest.processors.base import BaseProcessor
from booksy_ingest.services.idempotency import IdempotencyGate
from booksy_ingest.services.materializer import BookingMaterializer, duration_minutes
from booksy_ingest.services.resolver import EntityResolver
from booksy_ingest.services.sync_stats import SyncStatsService
from booksy_ingest.services.triage import TriageQueue

log = get_logger(__name__)


class BatchProcessor(BaseProcessor):
    """Turns a webhook batch of notifications into bookings."""

    def __init__(self, db: Database | None = None, parser: NotificationParser | None = None):
        self.db = db or Database()
        self.parser = parser or NotificationParser()
        self.gate = IdempotencyGate(self.db)
        self.resolver = EntityResolver(self.db)
        self.materializer = BookingMaterializer(self.db)
        self.triage = TriageQueue(self.db)
        self.sync_stats = SyncStatsService(self.db)

    def process(self, tenant_id: str, notifications: list[IncomingNotification]) -> BatchResult:
        """Process a batch of notifications."""
        return self.process_batch(tenant_id, notifications)

    def process_batch(self, tenant_id: str, notifications: list[IncomingNotification]) -> BatchResult:
        """
        Process notifications sequentially and update the salon's sync stats.

        Args:
            tenant_id: Salon id
            notifications: Notifications in delivery order

        Returns:
            BatchResult with one ItemResult per notification, in input order
        """
        log.info("batch_starting", tenant_id=tenant_id, count=len(notifications))
        batch = BatchResult()

        for index, notification in enumerate(notifications):
            bind_context(tenant_id=tenant_id, event_id=notification.event_id, item=index)
            try:
                batch.results.append(self.process_notification(tenant_id, notification))
            finally:
                clear_context()

        batch.processed = len(batch.results)
        batch.successful = sum(1 for r in batch.results if r.success)
        batch.errors = batch.processed - batch.successful

        try:
            self.sync_stats.record_batch(tenant_id, batch.processed, batch.successful, batch.errors)
        except StoreError as e:
            # Items are already committed; redelivery is safe thanks to event ids
            log.error("sync_stats_update_failed", tenant_id=tenant_id, error=str(e))

        log.info(
            "batch_complete",
            tenant_id=tenant_id,
            processed=batch.processed,
            successful=batch.successful,
            errors=batch.errors,
        )
        return batch

    def process_notification(self, tenant_id: str, notification: IncomingNotification) -> ItemResult:
        """
        Run one notification through the pipeline.

        Returns:
            ItemResult describing a booking, a triaged notification or a hard error
        """
        event_id = notification.event_id or None

        try:
            if event_id:
                existing = self.gate.check_existing(tenant_id, event_id)
                if existing:
                    return ItemResult(success=True, deduplicated=True, booking=existing)

            candidate: ParsedCandidate | None = None
            try:
                candidate = self.parser.parse(notification.subject, notification.body)
                duration_minutes(candidate.start_time, candidate.end_time)
                resolved = self.resolver.resolve(tenant_id, candidate)
                booking = self.materializer.materialize(tenant_id, candidate, resolved, event_id=event_id)
            except TriageableError as e:
                return self._send_to_triage(tenant_id, notification, e, candidate)

            return ItemResult(success=True, deduplicated=False, booking=booking)

        except StoreError as e:
            log.error("notification_store_fault", tenant_id=tenant_id, event_id=event_id, error=str(e))
            return ItemResult(success=False, pending=False, error=e.message)

    def _send_to_triage(
        self,
        tenant_id: str,
        notification: IncomingNotification,
        error: TriageableError,
        candidate: ParsedCandidate | None,
    ) -> ItemResult:
        """Park a notification the pipeline could not book."""
        log.warning(
            "notification_needs_triage",
            tenant_id=tenant_id,
            event_id=notification.event_id,
            kind=error.kind.value,
            error=str(error),
        )
        self.triage.enqueue(
            tenant_id,
            notification.subject,
            notification.body,
            reason=error.reason,
            event_id=notification.event_id,
            parsed_data=candidate.to_dict() if candidate else None,
        )
        return ItemResult(success=False, pending=True, reason=error.reason)
