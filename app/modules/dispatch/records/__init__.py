"""Notification record persistence contract."""

from modules.dispatch.records.store import InMemoryNotificationStore, NotificationStore

__all__ = ["InMemoryNotificationStore", "NotificationStore"]
