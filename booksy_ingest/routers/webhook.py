"""
Booksy notification webhook.

POST /webhooks/booksy — receives a batch of provider notifications for one
salon and turns them into bookings.
"""

import json
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic import ValidationError as PayloadValidationError
from starlette.concurrency import run_in_threadpool

from booksy_ingest.config import settings
from booksy_ingest.core.database import Database
from booksy_ingest.core.logging import get_logger
from booksy_ingest.core.models import IncomingNotification
from booksy_ingest.core.security import is_authorized
from booksy_ingest.dependencies import get_database
from booksy_ingest.processors.batch import BatchProcessor

log = get_logger(__name__)
router = APIRouter()


class NotificationIn(BaseModel):
    """
    One batch item. Never rejects a field: a missing or null subject or body
    becomes empty and is left for the parser to reject.
    """

    subject: str = ""
    body: str = ""
    event_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("eventId", "id", "event_id"),
    )

    @field_validator("subject", "body", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("event_id", mode="before")
    @classmethod
    def coerce_event_id(cls, v: Any) -> str | None:
        """Numeric ids are accepted as their string form."""
        return None if v is None else str(v)

    def to_notification(self) -> IncomingNotification:
        return IncomingNotification(subject=self.subject, body=self.body, event_id=self.event_id or None)


def to_notification(item: Any) -> IncomingNotification:
    """Notification for one raw batch item. Non-object items become empty notifications."""
    try:
        return NotificationIn.model_validate(item).to_notification()
    except PayloadValidationError:
        log.warning("webhook_item_invalid", item_type=type(item).__name__)
        return IncomingNotification(subject="", body="")


class WebhookPayload(BaseModel):
    tenant_id: UUID = Field(validation_alias=AliasChoices("tenantId", "salonId", "tenant_id"))
    notifications: list[Any] = Field(
        min_length=1,
        validation_alias=AliasChoices("notifications", "emails"),
    )


def get_batch_processor(db: Database = Depends(get_database)) -> BatchProcessor:
    return BatchProcessor(db=db)


@router.post("/webhooks/booksy")
async def booksy_webhook(
    request: Request,
    processor: BatchProcessor = Depends(get_batch_processor),
    x_booksy_webhook_secret: str | None = Header(None),
    authorization: str | None = Header(None),
):
    """
    Ingest a batch of Booksy notifications.

    Authenticated with the shared webhook secret, sent either as
    X-Booksy-Webhook-Secret or as a bearer token.
    """
    if not settings.booksy_webhook_secret:
        log.error("webhook_secret_not_configured")
        return JSONResponse(status_code=500, content={"error": "Webhook secret not configured"})

    if not is_authorized(x_booksy_webhook_secret, authorization, settings.booksy_webhook_secret):
        log.warning("webhook_unauthorized", client=request.client.host if request.client else None)
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        raw = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON payload"})

    try:
        payload = WebhookPayload.model_validate(raw)
    except PayloadValidationError as e:
        log.warning("webhook_payload_invalid", errors=e.error_count())
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid webhook payload", "details": json.loads(e.json(include_url=False))},
        )

    tenant_id = str(payload.tenant_id)
    notifications = [to_notification(item) for item in payload.notifications]
    log.info("webhook_received", tenant_id=tenant_id, count=len(notifications))

    try:
        result = await run_in_threadpool(processor.process_batch, tenant_id, notifications)
    except Exception as e:
        log.error("webhook_processing_failed", tenant_id=tenant_id, error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e)})

    return result.to_dict()
