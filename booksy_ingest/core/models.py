"""
Data models for Booksy notification ingestion.

Uses dataclasses for clean, typed data structures.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any

BOOKING_SOURCE = "external_provider"
BOOKING_NOTES_PREFIX = "Źródło: Booksy"


class BookingStatus(str, Enum):
    """Booking lifecycle states (only SCHEDULED is written by the pipeline)."""

    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class PendingStatus(str, Enum):
    """Triage states of a pending notification."""

    PENDING = "pending"
    RESOLVED = "resolved"
    IGNORED = "ignored"


@dataclass
class IncomingNotification:
    """Notification as handed over by the mailbox bridge."""

    subject: str
    body: str
    event_id: str | None = None


@dataclass
class ParsedCandidate:
    """Booking fields extracted from a notification body."""

    client_name: str
    phone: str
    service_name: str
    price_cents: int
    date: date
    start_time: time
    end_time: time
    employee_first_name: str
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON storage."""
        return {
            "clientName": self.client_name,
            "clientPhone": self.phone,
            "clientEmail": self.email,
            "serviceName": self.service_name,
            "priceCents": self.price_cents,
            "bookingDate": self.date.isoformat(),
            "startTime": self.start_time.strftime("%H:%M"),
            "endTime": self.end_time.strftime("%H:%M"),
            "employeeName": self.employee_first_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParsedCandidate":
        """Rebuild a candidate stored with to_dict()."""
        return cls(
            client_name=data["clientName"],
            phone=data["clientPhone"],
            email=data.get("clientEmail"),
            service_name=data["serviceName"],
            price_cents=int(data["priceCents"]),
            date=date.fromisoformat(data["bookingDate"]),
            start_time=time.fromisoformat(data["startTime"]),
            end_time=time.fromisoformat(data["endTime"]),
            employee_first_name=data["employeeName"],
        )


@dataclass
class ResolvedReferences:
    """Tenant entity ids a candidate was matched to."""

    client_id: str
    service_id: str
    employee_id: str


@dataclass
class Client:
    """Salon client."""

    id: str
    tenant_id: str
    full_name: str
    phone: str | None = None
    email: str | None = None
    client_code: str | None = None
    visit_count: int = 0


@dataclass
class Service:
    """Service offered by a salon."""

    id: str
    tenant_id: str
    name: str
    active: bool = True


@dataclass
class Employee:
    """Salon staff member."""

    id: str
    tenant_id: str
    first_name: str
    last_name: str = ""
    active: bool = True


@dataclass
class Booking:
    """Booking record created from a provider notification."""

    tenant_id: str
    client_id: str
    employee_id: str
    service_id: str
    date: date
    start_time: time
    duration_minutes: int
    price_cents: int
    id: str | None = None
    status: BookingStatus = BookingStatus.SCHEDULED
    source: str = BOOKING_SOURCE
    notes: str = ""
    provider_event_id: str | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "id": self.id,
            "salon_id": self.tenant_id,
            "client_id": self.client_id,
            "employee_id": self.employee_id,
            "service_id": self.service_id,
            "booking_date": self.date.isoformat(),
            "booking_time": self.start_time.strftime("%H:%M"),
            "duration": self.duration_minutes,
            "price_cents": self.price_cents,
            "status": self.status.value,
            "source": self.source,
            "notes": self.notes,
            "provider_event_id": self.provider_event_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class PendingNotification:
    """Notification parked for manual triage."""

    tenant_id: str
    subject: str
    body: str
    reason: str
    id: str | None = None
    event_id: str | None = None
    status: PendingStatus = PendingStatus.PENDING
    parsed_data: dict[str, Any] | None = None
    created_at: datetime | None = None
    resolved_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "id": self.id,
            "salon_id": self.tenant_id,
            "subject": self.subject,
            "body": self.body,
            "message_id": self.event_id,
            "status": self.status.value,
            "reason": self.reason,
            "parsed_data": self.parsed_data,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass
class SyncStats:
    """Per-tenant ingestion counters."""

    total: int = 0
    success: int = 0
    errors: int = 0
    last_sync_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API shape."""
        return {
            "lastSyncAt": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "syncStats": {
                "total": self.total,
                "success": self.success,
                "errors": self.errors,
            },
        }


@dataclass
class ItemResult:
    """Outcome of one notification in a batch."""

    success: bool
    deduplicated: bool = False
    booking: Booking | None = None
    pending: bool = False
    reason: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the webhook response item shape."""
        if self.success:
            return {
                "success": True,
                "deduplicated": self.deduplicated,
                "booking": self.booking.to_dict() if self.booking else None,
            }
        data: dict[str, Any] = {
            "success": False,
            "deduplicated": False,
            "pending": self.pending,
        }
        if self.reason:
            data["reason"] = self.reason
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class BatchResult:
    """Aggregated outcome of one webhook batch."""

    processed: int = 0
    successful: int = 0
    errors: int = 0
    results: list[ItemResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "processed": self.processed,
            "successful": self.successful,
            "errors": self.errors,
            "results": [r.to_dict() for r in self.results],
        }
