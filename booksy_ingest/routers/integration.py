"""
Booksy integration endpoints for salon operators.

GET   /integrations/booksy/pending            — triage queue
PATCH /integrations/booksy/pending/{id}       — mark resolved / ignored
POST  /integrations/booksy/pending/{id}/retry — book from stored parse result
GET   /integrations/booksy/stats              — sync counters and booking totals
GET   /integrations/booksy/logs               — most recent provider bookings
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from booksy_ingest.config import settings
from booksy_ingest.core.database import Database
from booksy_ingest.core.logging import get_logger
from booksy_ingest.dependencies import get_database, get_tenant_id
from booksy_ingest.services.sync_stats import SyncStatsService
from booksy_ingest.services.triage import TriageQueue

log = get_logger(__name__)
router = APIRouter(prefix="/integrations/booksy")


class PendingStatusUpdate(BaseModel):
    status: str


class RetryRequest(BaseModel):
    service_id: UUID | None = Field(default=None, validation_alias=AliasChoices("serviceId", "service_id"))
    employee_id: UUID | None = Field(default=None, validation_alias=AliasChoices("employeeId", "employee_id"))


@router.get("/pending")
def list_pending(
    status: str = "pending",
    tenant_id: str = Depends(get_tenant_id),
    db: Database = Depends(get_database),
):
    """List triaged notifications, newest first."""
    entries = TriageQueue(db).list_pending(tenant_id, status)
    return {"pending": [e.to_dict() for e in entries], "count": len(entries)}


@router.patch("/pending/{pending_id}")
def update_pending(
    pending_id: UUID,
    request: PendingStatusUpdate,
    tenant_id: str = Depends(get_tenant_id),
    db: Database = Depends(get_database),
):
    """Mark a triaged notification as resolved or ignored."""
    pending = TriageQueue(db).set_status(tenant_id, str(pending_id), request.status)
    return {"success": True, "pending": pending.to_dict()}


@router.post("/pending/{pending_id}/retry")
def retry_pending(
    pending_id: UUID,
    request: RetryRequest | None = None,
    tenant_id: str = Depends(get_tenant_id),
    db: Database = Depends(get_database),
):
    """Create the booking for a triaged notification, optionally overriding service and employee."""
    request = request or RetryRequest()
    booking = TriageQueue(db).retry(
        tenant_id,
        str(pending_id),
        service_id=str(request.service_id) if request.service_id else None,
        employee_id=str(request.employee_id) if request.employee_id else None,
    )
    return {"success": True, "booking": booking.to_dict()}


@router.get("/stats")
def get_stats(
    tenant_id: str = Depends(get_tenant_id),
    db: Database = Depends(get_database),
):
    """Sync counters plus provider booking totals."""
    service = SyncStatsService(db)
    data = service.get(tenant_id).to_dict()
    data["bookings"] = service.booking_counts(tenant_id)
    return data


@router.get("/logs")
def get_logs(
    tenant_id: str = Depends(get_tenant_id),
    db: Database = Depends(get_database),
):
    """Most recent bookings created from provider notifications."""
    bookings = db.get_recent_bookings(tenant_id, limit=settings.recent_bookings_limit)
    return {"bookings": bookings, "count": len(bookings)}
