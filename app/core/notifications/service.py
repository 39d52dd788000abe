"""Notification service for activity assignment and escalation alerts."""

import logging
from collections.abc import Awaitable, Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any
from uuid import UUID

import aiosmtplib

from app.core.config_file import Settings, get_settings
from app.core.logging import mask_email

logger = logging.getLogger(__name__)

RecipientResolver = Callable[[UUID], Awaitable[str | None]]

# event_type -> (subject, body); {{placeholders}} are filled from the activity
NOTIFICATION_TEMPLATES: dict[str, tuple[str, str]] = {
    "activity.assigned": (
        "New {{kind}} assigned to you: {{subject}}",
        "You have been assigned a {{kind}}.\n\n"
        "Subject: {{subject}}\n"
        "Priority: {{priority}}\n"
        "Due: {{due_date}}\n",
    ),
    "ticket.escalated": (
        "Ticket {{ticket_number}} escalated to you",
        "Support ticket {{ticket_number}} has been escalated to you.\n\n"
        "Subject: {{subject}}\n"
        "Severity: {{severity}}\n"
        "SLA due: {{sla_due_at}}\n"
        "Reason: {{reason}}\n",
    ),
}


class NotificationDeliveryError(Exception):
    """Raised when a notification could not be delivered."""


def settings_recipient_resolver(settings: Settings) -> RecipientResolver | None:
    """Build a resolver from the ``NOTIFICATION_RECIPIENTS`` user id -> email map.

    Returns None when the map is empty.
    """
    if not settings.NOTIFICATION_RECIPIENTS:
        return None
    recipients = {key.lower(): email for key, email in settings.NOTIFICATION_RECIPIENTS.items()}

    async def resolve(user_id: UUID) -> str | None:
        return recipients.get(str(user_id).lower())

    return resolve


class ActivityNotificationService:
    """Sends email alerts when an activity is assigned or a ticket escalated.

    User accounts live outside this service, so recipient addresses come from
    an injected ``recipient_resolver``, falling back to the
    ``NOTIFICATION_RECIPIENTS`` setting. Without either, or without a
    configured SMTP host, notifications are skipped with a warning.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        recipient_resolver: RecipientResolver | None = None,
    ):
        self.settings = settings or get_settings()
        self.recipient_resolver = recipient_resolver or settings_recipient_resolver(self.settings)

    async def notify(
        self,
        event_type: str,
        recipient_id: UUID,
        activity: Any,
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """Send one notification.

        Args:
            event_type: Template key ('activity.assigned', 'ticket.escalated')
            recipient_id: User to notify
            activity: Activity the notification is about
            extra: Additional template variables (e.g. escalation reason)

        Returns:
            True if an email was sent, False if delivery was skipped

        Raises:
            NotificationDeliveryError: If the recipient is unknown or SMTP fails
        """
        if not self.settings.NOTIFICATIONS_ENABLED:
            return False

        if event_type not in NOTIFICATION_TEMPLATES:
            raise NotificationDeliveryError(f"No template for event '{event_type}'")

        if not self.settings.SMTP_HOST or self.settings.SMTP_HOST == "localhost":
            logger.warning(
                f"SMTP not configured, skipping {event_type} notification for {recipient_id}. "
                "Set SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD to enable email sending."
            )
            return False

        if self.recipient_resolver is None:
            logger.warning(
                f"No recipient resolver configured, skipping {event_type} notification for {recipient_id}"
            )
            return False

        email = await self.recipient_resolver(recipient_id)
        if not email:
            raise NotificationDeliveryError(f"User {recipient_id} not found or has no email")

        subject_template, body_template = NOTIFICATION_TEMPLATES[event_type]
        data = self._template_data(activity, extra)
        message = MIMEMultipart("alternative")
        message["From"] = self.settings.SMTP_FROM
        message["To"] = email
        message["Subject"] = self._render_template(subject_template, data)
        message.attach(MIMEText(self._render_template(body_template, data), "plain"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.SMTP_HOST,
                port=self.settings.SMTP_PORT,
                username=self.settings.SMTP_USER or None,
                password=self.settings.SMTP_PASSWORD or None,
                start_tls=self.settings.SMTP_USE_TLS,
                timeout=self.settings.SMTP_TIMEOUT_SECONDS,
            )
        except aiosmtplib.SMTPException as e:
            raise NotificationDeliveryError(f"SMTP delivery failed: {e}") from e

        logger.info(f"{event_type} notification sent to {mask_email(email)}")
        return True

    @staticmethod
    def _template_data(activity: Any, extra: dict[str, Any] | None) -> dict[str, Any]:
        data = {
            key: getattr(activity, key, None)
            for key in (
                "kind",
                "subject",
                "priority",
                "due_date",
                "ticket_number",
                "severity",
                "sla_due_at",
            )
        }
        data["kind"] = (data["kind"] or "activity").replace("_", " ")
        data.update(extra or {})
        return data

    @staticmethod
    def _render_template(template: str, data: dict[str, Any]) -> str:
        """Replace ``{{variable}}`` placeholders; missing values render as '-'."""
        result = template
        for key, value in data.items():
            result = result.replace(f"{{{{{key}}}}}", "-" if value is None else str(value))
        return result
