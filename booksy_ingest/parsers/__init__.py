"""Notification parsers."""

from .notification import NotificationParser, ExpectedLine, parse_notification

__all__ = ["NotificationParser", "ExpectedLine", "parse_notification"]
