"""Notifications for activity assignment and escalation."""

from app.core.notifications.service import (
    ActivityNotificationService,
    NotificationDeliveryError,
    settings_recipient_resolver,
)

__all__ = [
    "ActivityNotificationService",
    "NotificationDeliveryError",
    "settings_recipient_resolver",
]
