"""
FastAPI dependency providers.
"""

from uuid import UUID

from fastapi import Header, HTTPException

from booksy_ingest.config import settings
from booksy_ingest.core.database import Database
from booksy_ingest.core.logging import get_logger
from booksy_ingest.core.security import extract_bearer_token, constant_time_compare

log = get_logger(__name__)


def get_database() -> Database:
    """Database handle for a request. Overridden in tests."""
    return Database()


def get_tenant_id(
    x_salon_id: str | None = Header(None),
    authorization: str | None = Header(None),
) -> str:
    """
    Resolve the salon a request acts on.

    The authenticating gateway injects X-Salon-Id and forwards the shared API
    secret as a bearer token.
    """
    if not settings.api_secret:
        log.error("api_secret_not_configured")
        raise HTTPException(status_code=500, detail="API secret not configured")

    token = extract_bearer_token(authorization)
    if token is None or not constant_time_compare(token, settings.api_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")

    if not x_salon_id:
        raise HTTPException(status_code=400, detail="Missing X-Salon-Id header")
    try:
        return str(UUID(x_salon_id))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-Salon-Id header")
