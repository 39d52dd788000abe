"""Domain errors raised by the activity lifecycle."""

from typing import Any


class ActivityError(Exception):
    """Base class for activity lifecycle errors.

    Each subclass carries a stable error ``code`` so the HTTP layer can map it
    onto the standard error envelope without inspecting messages.
    """

    code = "ACTIVITY_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ActivityNotFoundError(ActivityError):
    """Activity does not exist, belongs to another organization, or has the wrong kind."""

    code = "ACTIVITY_NOT_FOUND"

    def __init__(self, activity_id: Any, kind: str | None = None) -> None:
        message = f"Activity not found (ID: {activity_id})"
        if kind:
            message = f"{kind.replace('_', ' ').capitalize()} not found (ID: {activity_id})"
        super().__init__(message, {"activity_id": str(activity_id)})
        self.activity_id = activity_id


class InvalidTransitionError(ActivityError):
    """Ticket status change not permitted by the ticket state machine."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_state: str | None, to_state: str, allowed_states: list[str]):
        self.from_state = from_state
        self.to_state = to_state
        self.allowed_states = allowed_states
        message = f"Invalid transition from '{from_state}' to '{to_state}'"
        if allowed_states:
            message += f". Allowed states: {', '.join(allowed_states)}"
        super().__init__(
            message,
            {"from": from_state, "to": to_state, "allowed": allowed_states},
        )


class AlreadyCompletedError(ActivityError):
    """Activity was already completed, possibly by a concurrent request."""

    code = "ACTIVITY_ALREADY_COMPLETED"

    def __init__(self, activity_id: Any) -> None:
        super().__init__(
            f"Activity already completed (ID: {activity_id})",
            {"activity_id": str(activity_id)},
        )
        self.activity_id = activity_id


class ActivityValidationError(ActivityError):
    """Missing required field, immutable field write, or out-of-range value."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, {field: [message]} if field else None)
        self.field = field
