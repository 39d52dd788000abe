"""Unit tests for checklist progress and attendee helpers."""

from datetime import UTC, datetime

import pytest

from app.core.activities.checklist import (
    apply_attendee_status,
    apply_checklist_update,
    compute_progress,
    normalize_attendees,
    normalize_checklist,
    reset_checklist,
)
from app.core.activities.errors import ActivityValidationError

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


def _items(*flags):
    return [{"id": str(i), "text": f"item {i}", "completed": flag} for i, flag in enumerate(flags)]


def test_compute_progress():
    assert compute_progress(None) == 0
    assert compute_progress([]) == 0
    assert compute_progress(_items(True, True, False, False)) == 50
    assert compute_progress(_items(True, False, False)) == 33
    assert compute_progress(_items(True, True, False)) == 67
    assert compute_progress(_items(True)) == 100


def test_normalize_checklist_assigns_ids_and_timestamps():
    items = normalize_checklist([{"text": "a"}, {"text": "b", "completed": True}], NOW)
    assert all(item["id"] for item in items)
    assert items[0]["completed"] is False
    assert items[0]["completed_at"] is None
    assert items[1]["completed_at"] == NOW.isoformat()


def test_toggle_existing_item():
    checklist = _items(False, False)
    updated = apply_checklist_update(checklist, NOW, item_id="1", completed=True)
    assert updated[1]["completed"] is True
    assert updated[1]["completed_at"] == NOW.isoformat()
    # input is not mutated
    assert checklist[1]["completed"] is False


def test_uncomplete_clears_timestamp():
    checklist = [{"id": "x", "text": "a", "completed": True, "completed_at": NOW.isoformat()}]
    updated = apply_checklist_update(checklist, NOW, item_id="x", completed=False)
    assert updated[0]["completed_at"] is None


def test_rename_existing_item():
    updated = apply_checklist_update(_items(False), NOW, item_id="0", text="renamed")
    assert updated[0]["text"] == "renamed"
    assert updated[0]["completed"] is False


def test_append_new_item():
    updated = apply_checklist_update(_items(True), NOW, text="new")
    assert len(updated) == 2
    assert updated[1]["text"] == "new"
    assert updated[1]["completed"] is False
    assert compute_progress(updated) == 50


def test_unknown_item_without_text_rejected():
    with pytest.raises(ActivityValidationError):
        apply_checklist_update(_items(False), NOW, item_id="missing", completed=True)


def test_reset_checklist():
    assert reset_checklist(None) is None
    reset = reset_checklist(normalize_checklist([{"text": "a", "completed": True}], NOW))
    assert reset[0]["completed"] is False
    assert reset[0]["completed_at"] is None


def test_normalize_attendees_defaults_to_pending():
    attendees = normalize_attendees([{"email": "ana@example.com"}])
    assert attendees[0]["status"] == "pending"
    assert attendees[0]["id"]


def test_normalize_attendees_rejects_unknown_status():
    with pytest.raises(ActivityValidationError):
        normalize_attendees([{"email": "ana@example.com", "status": "maybe"}])


def test_attendee_status_by_email_and_id():
    attendees = normalize_attendees(
        [{"id": "a1", "email": "Ana@Example.com"}, {"id": "b2", "email": "bo@example.com"}]
    )
    updated = apply_attendee_status(attendees, "ana@example.com", "accepted")
    assert updated[0]["status"] == "accepted"
    updated = apply_attendee_status(updated, "b2", "declined")
    assert updated[1]["status"] == "declined"


def test_attendee_status_unknown_attendee_or_status():
    attendees = normalize_attendees([{"id": "a1", "email": "ana@example.com"}])
    with pytest.raises(ActivityValidationError):
        apply_attendee_status(attendees, "nobody@example.com", "accepted")
    with pytest.raises(ActivityValidationError):
        apply_attendee_status(attendees, "a1", "maybe")
