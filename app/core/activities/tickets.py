"""Support ticket numbering and status state machine."""

import secrets
import string
from datetime import datetime

from app.core.activities.errors import ActivityValidationError, InvalidTransitionError
from app.models.activity import TicketStatus

_BASE36_ALPHABET = string.digits + string.ascii_uppercase
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_ticket_number(now: datetime, prefix: str = "TKT") -> str:
    """Build a ticket number like ``TKT-LZ3K9Q2A-7F0B``.

    The middle part is the creation time in epoch milliseconds (base 36), the
    suffix is four random upper-case alphanumerics.
    """
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"{prefix}-{to_base36(millis)}-{suffix}"


def parse_ticket_status(value: TicketStatus | str) -> TicketStatus:
    """Coerce a raw status, rejecting values outside the state machine."""
    try:
        return TicketStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in TicketStatus)
        raise ActivityValidationError(
            f"Unknown ticket status '{value}'. Allowed values: {allowed}",
            field="ticket_status",
        ) from None


class TicketStateMachine:
    """State machine for support ticket status.

    Regular updates follow ``VALID_TRANSITIONS``. Escalation goes through the
    escalate operation only and is allowed from any non-terminal state.
    Completion moves any state to resolved (a closed ticket stays closed).
    """

    TERMINAL_STATES: frozenset[TicketStatus] = frozenset(
        {TicketStatus.RESOLVED, TicketStatus.CLOSED}
    )

    # Statuses a ticket may be created with
    INITIAL_STATES: frozenset[TicketStatus] = frozenset(
        {TicketStatus.OPEN, TicketStatus.IN_PROGRESS}
    )

    VALID_TRANSITIONS: dict[TicketStatus, set[TicketStatus]] = {
        TicketStatus.OPEN: {
            TicketStatus.IN_PROGRESS,
        },
        TicketStatus.IN_PROGRESS: {
            TicketStatus.PENDING_CUSTOMER,
        },
        TicketStatus.PENDING_CUSTOMER: {
            TicketStatus.IN_PROGRESS,
        },
        TicketStatus.ESCALATED: {
            TicketStatus.IN_PROGRESS,
        },
        TicketStatus.RESOLVED: {
            TicketStatus.CLOSED,
        },
        TicketStatus.CLOSED: set(),
    }

    @classmethod
    def validate_initial_status(cls, status: TicketStatus | str | None) -> TicketStatus:
        """Validate the status a new ticket is created with (None means open).

        Raises:
            ActivityValidationError: If the status is unknown or not an initial state
        """
        target = parse_ticket_status(status or TicketStatus.OPEN)
        if target not in cls.INITIAL_STATES:
            allowed = ", ".join(sorted(s.value for s in cls.INITIAL_STATES))
            raise ActivityValidationError(
                f"A new ticket cannot start as '{target.value}'. Allowed values: {allowed}",
                field="ticket_status",
            )
        return target

    @classmethod
    def validate_transition(
        cls, from_state: TicketStatus | str | None, to_state: TicketStatus | str
    ) -> TicketStatus:
        """
        Validate a status change requested through a regular update.

        Args:
            from_state: Current ticket status (None is treated as open)
            to_state: Requested ticket status

        Returns:
            The target status as an enum member

        Raises:
            ActivityValidationError: If ``to_state`` is not a known status
            InvalidTransitionError: If the transition is not allowed
        """
        current = parse_ticket_status(from_state or TicketStatus.OPEN)
        target = parse_ticket_status(to_state)

        if current == target:
            return target

        # resolved and escalated are set by complete and escalate
        allowed_states = cls.VALID_TRANSITIONS.get(current, set())
        if target not in allowed_states:
            raise InvalidTransitionError(
                from_state=current.value,
                to_state=target.value,
                allowed_states=sorted(s.value for s in allowed_states),
            )
        return target

    @classmethod
    def validate_escalation(cls, from_state: TicketStatus | str | None) -> TicketStatus:
        """Escalation is allowed from every non-terminal state."""
        current = parse_ticket_status(from_state or TicketStatus.OPEN)
        if current in cls.TERMINAL_STATES:
            raise InvalidTransitionError(
                from_state=current.value,
                to_state=TicketStatus.ESCALATED.value,
                allowed_states=sorted(s.value for s in cls.VALID_TRANSITIONS[current]),
            )
        return TicketStatus.ESCALATED

    @classmethod
    def completion_status(cls, from_state: TicketStatus | str | None) -> TicketStatus:
        """Status a ticket takes when it is completed."""
        current = parse_ticket_status(from_state or TicketStatus.OPEN)
        if current is TicketStatus.CLOSED:
            return TicketStatus.CLOSED
        return TicketStatus.RESOLVED

    @classmethod
    def get_allowed_transitions(cls, from_state: TicketStatus) -> list[TicketStatus]:
        """
        Get all statuses reachable by a regular update.

        Args:
            from_state: Current ticket status

        Returns:
            List of allowed target states
        """
        return list(cls.VALID_TRANSITIONS.get(from_state, set()))
