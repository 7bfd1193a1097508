"""Core modules for notification ingestion."""

from .logging import configure_logging, get_logger
from .models import (
    Booking,
    IncomingNotification,
    ParsedCandidate,
    PendingNotification,
    SyncStats,
)
from .database import Database

__all__ = [
    "configure_logging",
    "get_logger",
    "Booking",
    "IncomingNotification",
    "ParsedCandidate",
    "PendingNotification",
    "SyncStats",
    "Database",
]
