"""Notification processors."""

from .base import BaseProcessor
from .batch import BatchProcessor

__all__ = ["BaseProcessor", "BatchProcessor"]
