"""
Pending triage queue for notifications the pipeline could not book.

Operators list the queue, mark entries resolved or ignored, or retry an entry
with a service/employee picked by hand.
"""

from typing import Any

from booksy_ingest.config import settings
from booksy_ingest.core.database import Database
from booksy_ingest.core.exceptions import (
    NotFoundError,
    StoreError,
    TriageEnqueueError,
    ValidationError,
)
from booksy_ingest.core.logging import get_logger
from booksy_ingest.core.models import (
    Booking,
    ParsedCandidate,
    PendingNotification,
    PendingStatus,
    ResolvedReferences,
)
from booksy_ingest.services.materializer import BookingMaterializer
from booksy_ingest.services.resolver import EntityResolver, match_employee, match_service

log = get_logger(__name__)

# Status filter values accepted by list_pending; "all" disables filtering
STATUS_FILTERS = {"pending", "resolved", "ignored", "all"}

# Statuses an operator may set
OPERATOR_STATUSES = {PendingStatus.RESOLVED, PendingStatus.IGNORED}


class TriageQueue:
    """Durable holding area for unbookable notifications."""

    def __init__(self, db: Database):
        self.db = db
        self.resolver = EntityResolver(db)
        self.materializer = BookingMaterializer(db)

    def enqueue(
        self,
        tenant_id: str,
        subject: str,
        body: str,
        reason: str,
        event_id: str | None = None,
        parsed_data: dict[str, Any] | None = None,
    ) -> PendingNotification:
        """
        Park a notification for manual triage.

        Raises:
            TriageEnqueueError: If the notification could not be stored
        """
        pending = PendingNotification(
            tenant_id=tenant_id,
            subject=subject,
            body=body,
            reason=reason,
            event_id=event_id,
            parsed_data=parsed_data,
        )
        try:
            stored = self.db.insert_pending(pending)
        except StoreError as e:
            log.error("triage_enqueue_failed", tenant_id=tenant_id, event_id=event_id, error=str(e))
            raise TriageEnqueueError(f"Could not enqueue notification: {e.message}", tenant_id=tenant_id) from e

        log.info("notification_enqueued", tenant_id=tenant_id, pending_id=stored.id, reason=reason)
        return stored

    def list_pending(self, tenant_id: str, status: str = "pending") -> list[PendingNotification]:
        """
        List the salon's queue, newest first, capped at settings.pending_list_limit.

        Raises:
            ValidationError: If status is not one of STATUS_FILTERS
        """
        if status not in STATUS_FILTERS:
            raise ValidationError(f"Invalid status '{status}'. Use one of: {', '.join(sorted(STATUS_FILTERS))}")

        status_filter = None if status == "all" else PendingStatus(status)
        return self.db.list_pending(tenant_id, status_filter, limit=settings.pending_list_limit)

    def set_status(self, tenant_id: str, pending_id: str, status: str) -> PendingNotification:
        """
        Mark a queue entry resolved or ignored.

        Raises:
            ValidationError: If status is not resolved/ignored
            NotFoundError: If the entry does not exist in this salon
        """
        try:
            new_status = PendingStatus(status)
        except ValueError:
            new_status = None
        if new_status not in OPERATOR_STATUSES:
            raise ValidationError('Invalid status. Must be "resolved" or "ignored".')

        updated = self.db.update_pending_status(tenant_id, pending_id, new_status)
        if not updated:
            raise NotFoundError("Pending email", pending_id)

        log.info("pending_status_changed", tenant_id=tenant_id, pending_id=pending_id, status=new_status.value)
        return updated

    def retry(
        self,
        tenant_id: str,
        pending_id: str,
        service_id: str | None = None,
        employee_id: str | None = None,
    ) -> Booking:
        """
        Book a queue entry from its stored parse result.

        Operator overrides take precedence; fields without an override are
        matched the same way the pipeline does. The entry is marked resolved
        once the booking exists.

        Raises:
            NotFoundError: Entry, service or employee not found in this salon
            ValidationError: Entry is not pending or has no parsed data
            UnresolvedReferenceError: Automatic matching failed
            InvalidTimeRangeError: Stored times are not a valid range
        """
        pending = self.db.get_pending(tenant_id, pending_id)
        if not pending:
            raise NotFoundError("Pending email", pending_id)
        if pending.status is not PendingStatus.PENDING:
            raise ValidationError("Email is already processed (not in pending status)")
        if not pending.parsed_data:
            raise ValidationError("Cannot retry: parsed_data is missing from the pending record")

        candidate = ParsedCandidate.from_dict(pending.parsed_data)

        if service_id:
            service = self.db.get_service(tenant_id, service_id)
            if not service:
                raise NotFoundError("Service", service_id)
        else:
            service = match_service(self.db.get_active_services(tenant_id), candidate.service_name)

        if employee_id:
            employee = self.db.get_employee(tenant_id, employee_id)
            if not employee:
                raise NotFoundError("Employee", employee_id)
        else:
            employee = match_employee(self.db.get_active_employees(tenant_id), candidate.employee_first_name)

        client = self.resolver.get_or_create_client(tenant_id, candidate)
        resolved = ResolvedReferences(client_id=client.id, service_id=service.id, employee_id=employee.id)
        booking = self.materializer.materialize(tenant_id, candidate, resolved, event_id=pending.event_id)

        self.db.update_pending_status(tenant_id, pending_id, PendingStatus.RESOLVED)
        log.info("pending_retry_booked", tenant_id=tenant_id, pending_id=pending_id, booking_id=booking.id)
        return booking
