"""
Idempotency gate for provider notifications.

A notification that carries a provider event id is checked against existing
bookings before its body is looked at.
"""

from booksy_ingest.core.database import Database
from booksy_ingest.core.logging import get_logger
from booksy_ingest.core.models import Booking

log = get_logger(__name__)


def marker_for(event_id: str) -> str:
    """Notes marker identifying the provider event a booking came from."""
    return f"[provider_event_id:{event_id}]"


class IdempotencyGate:
    """Looks up bookings already materialized for a provider event."""

    def __init__(self, db: Database):
        self.db = db

    def check_existing(self, tenant_id: str, event_id: str) -> Booking | None:
        """
        Return the booking already created for (tenant_id, event_id), if any.

        Raises:
            ValueError: If event_id is empty
            StoreError: If the lookup itself fails
        """
        if not event_id:
            raise ValueError("event_id must be a non-empty string")

        booking = self.db.find_booking_by_event(tenant_id, event_id)
        if booking:
            log.info("notification_deduplicated", tenant_id=tenant_id, event_id=event_id, booking_id=booking.id)
        return booking
