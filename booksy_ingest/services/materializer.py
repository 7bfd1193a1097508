"""
Booking materializer: persists a resolved candidate as a booking.
"""

from datetime import time

from booksy_ingest.core.database import Database
from booksy_ingest.core.exceptions import InvalidTimeRangeError, SlotConflictError, StoreError
from booksy_ingest.core.logging import get_logger
from booksy_ingest.core.models import (
    BOOKING_NOTES_PREFIX,
    BOOKING_SOURCE,
    Booking,
    BookingStatus,
    ParsedCandidate,
    ResolvedReferences,
)
from booksy_ingest.services.idempotency import marker_for

log = get_logger(__name__)


def duration_minutes(start: time, end: time) -> int:
    """
    Minutes between two times of the same day.

    Raises:
        InvalidTimeRangeError: If end is not after start
    """
    minutes = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
    if minutes <= 0:
        raise InvalidTimeRangeError(start.strftime("%H:%M"), end.strftime("%H:%M"))
    return minutes


def build_notes(event_id: str | None) -> str:
    """Booking notes, with the provider event marker when an event id is known."""
    if event_id:
        return f"{BOOKING_NOTES_PREFIX} {marker_for(event_id)}"
    return BOOKING_NOTES_PREFIX


class BookingMaterializer:
    """Creates bookings from resolved notifications."""

    def __init__(self, db: Database):
        self.db = db

    def materialize(
        self,
        tenant_id: str,
        candidate: ParsedCandidate,
        resolved: ResolvedReferences,
        event_id: str | None = None,
    ) -> Booking:
        """
        Persist a booking for a resolved candidate.

        Args:
            tenant_id: Salon id
            candidate: Parsed notification
            resolved: Client, service and employee ids in the salon
            event_id: Provider event id, embedded for later deduplication

        Returns:
            The stored booking. If a concurrent delivery already stored one for
            the same event, that booking is returned instead.

        Raises:
            InvalidTimeRangeError: If end time is not after start time
            SlotConflictError: If the employee already has a booking at that start
            StoreError: On database failure
        """
        booking = Booking(
            tenant_id=tenant_id,
            client_id=resolved.client_id,
            employee_id=resolved.employee_id,
            service_id=resolved.service_id,
            date=candidate.date,
            start_time=candidate.start_time,
            duration_minutes=duration_minutes(candidate.start_time, candidate.end_time),
            price_cents=candidate.price_cents,
            status=BookingStatus.SCHEDULED,
            source=BOOKING_SOURCE,
            notes=build_notes(event_id),
            provider_event_id=event_id or None,
        )

        taken = self.db.find_booking_in_slot(tenant_id, booking.employee_id, booking.date, booking.start_time)
        if taken is not None:
            if event_id and taken.provider_event_id == event_id:
                return taken
            raise SlotConflictError(
                booking.employee_id,
                booking.date.isoformat(),
                booking.start_time.strftime("%H:%M"),
                booking_id=taken.id,
            )

        stored = self.db.insert_booking(booking)
        if stored is None:
            # Lost the race against another delivery of the same event
            stored = self.db.find_booking_by_event(tenant_id, event_id) if event_id else None
            if stored is None:
                raise StoreError("Booking insert returned no row", tenant_id=tenant_id, event_id=event_id)
            return stored

        log.info(
            "booking_created",
            tenant_id=tenant_id,
            booking_id=stored.id,
            booking_date=stored.date.isoformat(),
            duration=stored.duration_minutes,
        )
        return stored
