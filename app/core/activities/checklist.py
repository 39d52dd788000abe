"""Checklist progress and attendee sub-state helpers."""

from datetime import datetime
from typing import Any
from uuid import uuid4

from app.core.activities.errors import ActivityValidationError
from app.models.activity import AttendeeStatus


def compute_progress(checklist: list[dict[str, Any]] | None) -> int:
    """Percentage of completed checklist items, 0 for an empty checklist."""
    if not checklist:
        return 0
    completed = sum(1 for item in checklist if item.get("completed"))
    return round(completed / len(checklist) * 100)


def normalize_checklist(
    items: list[dict[str, Any]] | None, now: datetime
) -> list[dict[str, Any]]:
    """Give every item an id and the full ``{id, text, completed, completed_at}`` shape."""
    normalized = []
    for item in items or []:
        completed = bool(item.get("completed", False))
        completed_at = item.get("completed_at")
        if completed and completed_at is None:
            completed_at = now.isoformat()
        normalized.append(
            {
                "id": str(item.get("id") or uuid4()),
                "text": item.get("text", ""),
                "completed": completed,
                "completed_at": completed_at if completed else None,
            }
        )
    return normalized


def apply_checklist_update(
    checklist: list[dict[str, Any]] | None,
    now: datetime,
    item_id: str | None = None,
    completed: bool | None = None,
    text: str | None = None,
) -> list[dict[str, Any]]:
    """Return a new checklist with one item updated or appended.

    An existing ``item_id`` gets its completion flag and/or text replaced.
    An unknown (or missing) id with ``text`` appends a new open item.

    Raises:
        ActivityValidationError: If the item does not exist and no text was given.
    """
    items = [dict(item) for item in checklist or []]

    for item in items:
        if item_id is not None and str(item.get("id")) == str(item_id):
            if completed is not None:
                item["completed"] = completed
                item["completed_at"] = now.isoformat() if completed else None
            if text is not None:
                item["text"] = text
            return items

    if text is None:
        raise ActivityValidationError(
            f"Checklist item '{item_id}' not found and no text provided",
            field="item_id",
        )

    items.append({"id": str(uuid4()), "text": text, "completed": False, "completed_at": None})
    return items


def reset_checklist(checklist: list[dict[str, Any]] | None) -> list[dict[str, Any]] | None:
    """Copy of a checklist with every item reopened (used for the next occurrence)."""
    if checklist is None:
        return None
    return [{**item, "completed": False, "completed_at": None} for item in checklist]


def normalize_attendees(attendees: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Fill in ids and default ``pending`` status on attendee entries."""
    normalized = []
    for attendee in attendees or []:
        status = attendee.get("status") or AttendeeStatus.PENDING.value
        if status not in AttendeeStatus._value2member_map_:
            raise ActivityValidationError(f"Unknown attendee status '{status}'", field="attendees")
        normalized.append(
            {
                "id": str(attendee.get("id") or uuid4()),
                "email": attendee.get("email"),
                "name": attendee.get("name"),
                "status": AttendeeStatus(status).value,
            }
        )
    return normalized


def apply_attendee_status(
    attendees: list[dict[str, Any]] | None,
    attendee: str,
    status: AttendeeStatus | str,
) -> list[dict[str, Any]]:
    """Return a new attendee list with one attendee's response updated.

    ``attendee`` matches either the attendee id or, case-insensitively, email.

    Raises:
        ActivityValidationError: If no attendee matches or the status is unknown.
    """
    try:
        new_status = AttendeeStatus(status)
    except ValueError:
        raise ActivityValidationError(f"Unknown attendee status '{status}'", field="status") from None

    items = [dict(entry) for entry in attendees or []]
    needle = attendee.strip().lower()
    for entry in items:
        email = (entry.get("email") or "").lower()
        if str(entry.get("id")) == attendee or (email and email == needle):
            entry["status"] = new_status.value
            return items

    raise ActivityValidationError(f"Attendee '{attendee}' not found", field="attendee")
