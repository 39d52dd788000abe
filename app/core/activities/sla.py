"""SLA policy for support tickets."""

from datetime import datetime, timedelta

from app.models.activity import TicketSeverity

DEFAULT_SLA_HOURS = 24

SLA_HOURS: dict[TicketSeverity, int] = {
    TicketSeverity.CRITICAL: 1,
    TicketSeverity.HIGH: 4,
    TicketSeverity.MEDIUM: 8,
    TicketSeverity.LOW: 24,
}


def sla_hours(severity: TicketSeverity | str | None) -> int:
    """Return the resolution window, in hours, for a severity.

    Unknown or missing severities fall back to the most lenient window.

    Examples:
        >>> sla_hours("critical")
        1
        >>> sla_hours("whatever")
        24
    """
    if severity is None:
        return DEFAULT_SLA_HOURS
    try:
        return SLA_HOURS[TicketSeverity(severity)]
    except ValueError:
        return DEFAULT_SLA_HOURS


def compute_sla_due_at(created_at: datetime, severity: TicketSeverity | str | None) -> datetime:
    """Deadline by which a ticket created at ``created_at`` must be resolved."""
    return created_at + timedelta(hours=sla_hours(severity))


def is_sla_breached(sla_due_at: datetime | None, is_completed: bool, now: datetime) -> bool:
    """Whether an open ticket has passed its deadline."""
    if sla_due_at is None or is_completed:
        return False
    return now > sla_due_at
