"""
Per-salon sync statistics.
"""

from booksy_ingest.core.database import Database
from booksy_ingest.core.logging import get_logger
from booksy_ingest.core.models import SyncStats

log = get_logger(__name__)


class SyncStatsService:
    """Maintains the ingestion counters shown on the integration page."""

    def __init__(self, db: Database):
        self.db = db

    def record_batch(self, tenant_id: str, processed: int, successful: int, errors: int) -> SyncStats:
        """Add one batch to the salon's counters with a single upsert."""
        stats = self.db.upsert_sync_stats(tenant_id, processed, successful, errors)
        log.info(
            "sync_stats_updated",
            tenant_id=tenant_id,
            total=stats.total,
            success=stats.success,
            errors=stats.errors,
        )
        return stats

    def get(self, tenant_id: str) -> SyncStats:
        """Current counters; zeros when the salon never synced."""
        return self.db.get_sync_stats(tenant_id) or SyncStats()

    def booking_counts(self, tenant_id: str) -> dict[str, int]:
        """Provider bookings split by status."""
        return self.db.count_bookings(tenant_id)
