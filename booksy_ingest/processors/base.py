"""
Abstract base class for notification processors.
"""

from abc import ABC, abstractmethod

from booksy_ingest.core.models import BatchResult, IncomingNotification


class BaseProcessor(ABC):
    """Abstract processor interface for notification ingestion pipelines."""

    @abstractmethod
    def process(self, tenant_id: str, notifications: list[IncomingNotification]) -> BatchResult:
        """
        Process a batch of notifications for one salon.

        Args:
            tenant_id: Salon the notifications belong to
            notifications: Notifications in delivery order

        Returns:
            Aggregated batch result
        """
        pass
