"""
Exceptions for the Booksy ingestion pipeline.

Every error carries an ErrorKind so the batch orchestrator can decide whether
a notification goes to the triage queue or is recorded as a hard failure.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error taxonomy of the ingestion pipeline."""

    MALFORMED_NOTIFICATION = "MALFORMED_NOTIFICATION"
    UNRESOLVED_REFERENCE = "UNRESOLVED_REFERENCE"
    INVALID_TIME_RANGE = "INVALID_TIME_RANGE"
    SLOT_CONFLICT = "SLOT_CONFLICT"
    STORE_FAULT = "STORE_FAULT"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"


class IngestError(Exception):
    """Base exception for the ingestion pipeline."""

    kind: ErrorKind = ErrorKind.STORE_FAULT

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class TriageableError(IngestError):
    """Failure that sends the notification to the pending triage queue."""

    @property
    def reason(self) -> str:
        """Human readable reason stored on the pending notification."""
        return f"{self.kind.value}: {self.message}"


class ParseError(TriageableError):
    """Notification body does not follow the provider layout."""

    kind = ErrorKind.MALFORMED_NOTIFICATION

    def __init__(self, message: str, step: str, line: str | None = None) -> None:
        self.step = step
        self.line = line
        super().__init__(message, step=step, line=line)


class InvalidTimeRangeError(TriageableError):
    """Booking end time is not after its start time."""

    kind = ErrorKind.INVALID_TIME_RANGE

    def __init__(self, start: str, end: str) -> None:
        self.start = start
        self.end = end
        super().__init__(f"End time {end} is not after start time {start}", start=start, end=end)


class UnresolvedReferenceError(TriageableError):
    """A parsed field could not be matched to a tenant entity."""

    kind = ErrorKind.UNRESOLVED_REFERENCE

    def __init__(self, field: str, value: str, detail: str = "no match") -> None:
        self.field = field
        self.value = value
        self.detail = detail
        super().__init__(f"{field} '{value}' could not be resolved: {detail}", field=field)


class SlotConflictError(TriageableError):
    """The employee already has a booking starting at the same date and time."""

    kind = ErrorKind.SLOT_CONFLICT

    def __init__(self, employee_id: str, booking_date: str, booking_time: str, booking_id: str | None = None) -> None:
        self.employee_id = employee_id
        self.booking_date = booking_date
        self.booking_time = booking_time
        self.booking_id = booking_id
        super().__init__(
            f"Slot already taken: employee {employee_id} on {booking_date} at {booking_time}",
            booking_id=booking_id,
        )


class StoreError(IngestError):
    """Any failure talking to the relational store."""

    kind = ErrorKind.STORE_FAULT


class TriageEnqueueError(StoreError):
    """The pending triage queue could not persist a notification."""


class NotFoundError(IngestError):
    """Tenant-scoped record does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found", resource_id=resource_id)


class ValidationError(IngestError):
    """Operator request cannot be applied to the record in its current state."""

    kind = ErrorKind.VALIDATION
