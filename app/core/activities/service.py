"""Activity lifecycle service: creation policy, completion, escalation and sub-state updates."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from app.core.activities.checklist import (
    apply_attendee_status,
    apply_checklist_update,
    compute_progress,
    normalize_attendees,
    normalize_checklist,
    reset_checklist,
)
from app.core.activities.errors import (
    ActivityNotFoundError,
    ActivityValidationError,
    AlreadyCompletedError,
)
from app.core.activities.recurrence import next_occurrence
from app.core.activities.sla import compute_sla_due_at, is_sla_breached
from app.core.activities.tickets import TicketStateMachine, generate_ticket_number
from app.core.config_file import get_settings
from app.core.logging import log_activity_event
from app.core.notifications import ActivityNotificationService
from app.models.activity import (
    Activity,
    ActivityKind,
    ActivityPriority,
    MeetingActivity,
    SupportTicket,
    activity_class_for,
)
from app.repositories.activity_repository import ActivityRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Set by the lifecycle itself, never accepted from callers
GENERATED_FIELDS = frozenset(
    {
        "id",
        "organization_id",
        "kind",
        "created_at",
        "updated_at",
        "sla_breached",
        "resolution_time_minutes",
        "escalated_at",
        "actual_hours",
        "next_occurrence",
        "recurrence_source_id",
    }
)

# Additionally frozen once the activity exists
IMMUTABLE_AFTER_CREATE = frozenset(
    {"ticket_number", "sla_due_at", "is_completed", "completed_at", "escalated_to"}
)

# Not copied onto the next occurrence of a recurring activity
RESET_ON_RECURRENCE = GENERATED_FIELDS | frozenset(
    {
        "is_completed",
        "completed_at",
        "progress",
        "scheduled_at",
        "due_date",
        "snoozed_until",
        "reminder_sent",
        "ticket_number",
        "ticket_status",
        "sla_due_at",
        "escalated_to",
        "satisfaction_rating",
        "satisfaction_feedback",
    }
)

# custom_fields keys written by the lifecycle itself, not copied to the next occurrence
PER_OCCURRENCE_CUSTOM_FIELDS = frozenset({"escalation_reason", "notification_errors"})

MAX_TICKET_NUMBER_ATTEMPTS = 5


@dataclass
class PendingNotification:
    """Notification to send once the mutation is committed."""

    event_type: str
    recipient_id: UUID
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActivityResult:
    """Outcome of a lifecycle operation.

    ``spawned`` holds the next occurrence created by completing a recurring
    activity. ``warnings`` collects soft failures (notifications) that never
    turn into errors for the caller.
    """

    activity: Activity
    spawned: Activity | None = None
    notifications: list[PendingNotification] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class ActivityService:
    """Service orchestrating the activity lifecycle.

    All policy (ticket numbers, SLA deadlines, progress, recurrence) is applied
    here, explicitly, before anything is persisted.
    """

    def __init__(
        self,
        db: Session,
        notifier: ActivityNotificationService | None = None,
        clock: Clock | None = None,
    ):
        """Initialize activity service.

        Args:
            db: Database session
            notifier: Notification service (created if not provided)
            clock: Returns the current UTC time (defaults to the system clock)
        """
        self.db = db
        self.repository = ActivityRepository(db)
        self.notifier = notifier or ActivityNotificationService()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_activity(self, activity_id: UUID, organization_id: UUID) -> Activity:
        """Get an activity of the organization or raise ActivityNotFoundError."""
        activity = self.repository.get_by_id(activity_id, organization_id)
        if activity is None:
            raise ActivityNotFoundError(activity_id)
        return activity

    def list_activities(
        self,
        organization_id: UUID,
        skip: int = 0,
        limit: int = 100,
        **filters: Any,
    ) -> tuple[list[Activity], int]:
        """List activities with optional filters.

        Args:
            organization_id: Organization ID
            skip: Skip records
            limit: Limit records
            **filters: kind, is_completed, contact_id, deal_id, assigned_to, ticket_status

        Returns:
            Tuple of (page of activities, total matching count)
        """
        filters = {key: value for key, value in filters.items() if value is not None}
        activities = self.repository.get_all(organization_id, skip=skip, limit=limit, **filters)
        return activities, self.repository.count_all(organization_id, **filters)

    def get_overdue_activities(
        self, organization_id: UUID, skip: int = 0, limit: int = 100
    ) -> tuple[list[Activity], int]:
        """Open activities past their due date."""
        now = self.clock()
        return (
            self.repository.get_overdue(organization_id, now, skip, limit),
            self.repository.count_overdue(organization_id, now),
        )

    def get_stats(self, organization_id: UUID) -> dict[str, Any]:
        return self.repository.get_stats(organization_id, self.clock())

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_activity(
        self,
        organization_id: UUID,
        kind: ActivityKind | str,
        data: dict[str, Any] | None = None,
        user_id: UUID | None = None,
    ) -> ActivityResult:
        """Create a new activity.

        Support tickets get a ticket number and, when a severity is given, an
        SLA deadline. Checklist items are normalized and progress derived.

        Args:
            organization_id: Owning organization (required)
            kind: Activity kind
            data: Remaining activity fields
            user_id: Creating user

        Returns:
            ActivityResult with the created activity

        Raises:
            ActivityValidationError: On missing organization, unknown kind or
                fields that do not belong to the kind
        """
        if organization_id is None:
            raise ActivityValidationError("organization_id is required", field="organization_id")
        kind = self._parse_kind(kind)
        fields = dict(data or {})
        self._reject_fields(fields, GENERATED_FIELDS, "is set by the system")

        now = self.clock()
        activity_data = self._prepare_fields(kind, fields, now)
        activity_data.update(
            {
                "kind": kind.value,
                "organization_id": organization_id,
                "user_id": user_id,
                "created_at": now,
                "updated_at": now,
            }
        )
        self._apply_creation_policy(kind, activity_data, now)

        activity = self.repository.create(activity_data)
        result = ActivityResult(activity=activity)
        if activity.assigned_to:
            result.notifications.append(
                PendingNotification("activity.assigned", activity.assigned_to)
            )

        log_activity_event(
            "activity.created",
            activity.id,
            organization_id,
            user_id,
            {"kind": kind.value, "ticket_number": activity_data.get("ticket_number")},
        )
        logger.info(f"Activity created: {activity.id} ({kind.value})")
        return result

    def log_call(
        self,
        organization_id: UUID,
        data: dict[str, Any],
        user_id: UUID | None = None,
    ) -> ActivityResult:
        """Record a call that already happened as a completed call activity."""
        now = self.clock()
        fields = dict(data)
        fields.setdefault("scheduled_at", now)
        fields.setdefault("subject", "Call logged")
        result = self.create_activity(organization_id, ActivityKind.CALL, fields, user_id)

        activity = result.activity
        activity.is_completed = True
        activity.completed_at = now
        activity.progress = 100
        result.activity = self.repository.save(activity)
        return result

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_activity(
        self,
        activity_id: UUID,
        organization_id: UUID,
        data: dict[str, Any],
        user_id: UUID | None = None,
    ) -> ActivityResult:
        """Apply a partial update.

        Ticket status changes go through the ticket state machine, a replaced
        checklist recomputes progress, and tickets get an SLA breach check.

        Raises:
            ActivityNotFoundError: If the activity does not exist in the organization
            ActivityValidationError: On writes to immutable or foreign fields
            InvalidTransitionError: On a disallowed ticket status change
        """
        activity = self.get_activity(activity_id, organization_id)
        fields = dict(data)
        self._reject_fields(fields, GENERATED_FIELDS | IMMUTABLE_AFTER_CREATE, "cannot be changed")

        now = self.clock()
        kind = ActivityKind(activity.kind)
        if "ticket_status" in fields and isinstance(activity, SupportTicket):
            fields["ticket_status"] = TicketStateMachine.validate_transition(
                activity.ticket_status, fields["ticket_status"]
            ).value
        previous_assignee = activity.assigned_to

        for key, value in self._prepare_fields(kind, fields, now).items():
            setattr(activity, key, value)
        if "checklist" in fields:
            activity.progress = compute_progress(activity.checklist)

        self.check_sla_breach(activity, now)
        activity.updated_at = now
        activity = self.repository.save(activity)

        result = ActivityResult(activity=activity)
        if activity.assigned_to and activity.assigned_to != previous_assignee:
            result.notifications.append(
                PendingNotification("activity.assigned", activity.assigned_to)
            )
        logger.info(f"Activity updated: {activity.id} fields={sorted(fields)}")
        return result

    def update_checklist(
        self,
        activity_id: UUID,
        organization_id: UUID,
        item_id: str | None = None,
        completed: bool | None = None,
        text: str | None = None,
    ) -> ActivityResult:
        """Toggle, rename or append a checklist item and recompute progress."""
        activity = self.get_activity(activity_id, organization_id)
        now = self.clock()

        activity.checklist = apply_checklist_update(
            activity.checklist, now, item_id=item_id, completed=completed, text=text
        )
        activity.progress = compute_progress(activity.checklist)
        self.check_sla_breach(activity, now)
        activity.updated_at = now
        return ActivityResult(activity=self.repository.save(activity))

    def update_attendee_status(
        self,
        activity_id: UUID,
        organization_id: UUID,
        attendee: str,
        status: str,
    ) -> ActivityResult:
        """Record an attendee's response on a meeting or demo."""
        activity = self.repository.get_by_id(activity_id, organization_id)
        if not isinstance(activity, MeetingActivity):
            raise ActivityNotFoundError(activity_id, kind=ActivityKind.MEETING.value)

        activity.attendees = apply_attendee_status(activity.attendees, attendee, status)
        activity.updated_at = self.clock()
        return ActivityResult(activity=self.repository.save(activity))

    def snooze_reminder(
        self,
        activity_id: UUID,
        organization_id: UUID,
        minutes: int | None = None,
    ) -> ActivityResult:
        """Push the reminder back by ``minutes`` (default from settings, 15)."""
        if minutes is None:
            minutes = self.settings.DEFAULT_SNOOZE_MINUTES
        if minutes <= 0:
            raise ActivityValidationError("Snooze minutes must be positive", field="minutes")

        activity = self.get_activity(activity_id, organization_id)
        now = self.clock()
        activity.snoozed_until = now + timedelta(minutes=minutes)
        activity.reminder_sent = False
        self.check_sla_breach(activity, now)
        activity.updated_at = now
        return ActivityResult(activity=self.repository.save(activity))

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def complete_activity(
        self,
        activity_id: UUID,
        organization_id: UUID,
        user_id: UUID | None = None,
    ) -> ActivityResult:
        """Mark an activity completed and spawn its next occurrence if recurring.

        The completion flag is flipped with a conditional update, so of two
        concurrent calls exactly one wins; the other gets AlreadyCompletedError
        and no second occurrence is created.

        Raises:
            ActivityNotFoundError: If the activity does not exist in the organization
            AlreadyCompletedError: If the activity is (or just became) completed
        """
        activity = self.get_activity(activity_id, organization_id)
        if activity.is_completed:
            raise AlreadyCompletedError(activity_id)

        now = self.clock()
        values: dict[str, Any] = {"completed_at": now, "progress": 100, "updated_at": now}

        if activity.estimated_hours is not None:
            values["actual_hours"] = round((now - activity.created_at).total_seconds() / 3600, 2)

        if isinstance(activity, SupportTicket):
            if is_sla_breached(activity.sla_due_at, False, now):
                values["sla_breached"] = True
            if activity.resolution_time_minutes is None:
                values["resolution_time_minutes"] = round(
                    (now - activity.created_at).total_seconds() / 60
                )
            values["ticket_status"] = TicketStateMachine.completion_status(
                activity.ticket_status
            ).value

        next_date = self._next_occurrence_for(activity, now)
        if next_date is not None:
            values["next_occurrence"] = next_date

        if not self.repository.complete_if_pending(activity_id, organization_id, values):
            self.repository.rollback()
            logger.warning(f"Activity {activity_id} was completed concurrently")
            raise AlreadyCompletedError(activity_id)

        spawned = None
        if next_date is not None:
            # Same transaction as the completion flag
            spawned = self.repository.create(self._next_occurrence_data(activity, next_date, now))
            logger.info(f"Recurring activity {activity_id} spawned {spawned.id} for {next_date.isoformat()}")
        else:
            self.repository.commit()

        self.db.refresh(activity)
        log_activity_event(
            "activity.completed",
            activity.id,
            organization_id,
            user_id,
            {"spawned": str(spawned.id) if spawned else None},
        )
        return ActivityResult(activity=activity, spawned=spawned)

    def _next_occurrence_for(self, activity: Activity, now: datetime) -> datetime | None:
        """Next occurrence date if a recurring activity should be rescheduled."""
        if not activity.is_recurring:
            return None
        candidate = next_occurrence(
            activity.scheduled_at or now,
            activity.recurrence_pattern,
            activity.recurrence_interval,
        )
        if candidate is None:
            return None
        if activity.recurrence_end_date is not None and candidate > activity.recurrence_end_date:
            logger.info(f"Recurrence of {activity.id} ended on {activity.recurrence_end_date.isoformat()}")
            return None
        return candidate

    def _next_occurrence_data(
        self, activity: Activity, next_date: datetime, now: datetime
    ) -> dict[str, Any]:
        """Clone an activity's fields for its next occurrence, reset to not completed."""
        mapper = sa_inspect(type(activity))
        data = {
            attr.key: getattr(activity, attr.key)
            for attr in mapper.column_attrs
            if attr.key not in RESET_ON_RECURRENCE
        }
        base_date = activity.scheduled_at or now
        if activity.reminder_at is not None:
            data["reminder_at"] = activity.reminder_at + (next_date - base_date)
        if data.get("custom_fields") is not None:
            data["custom_fields"] = {
                key: value
                for key, value in data["custom_fields"].items()
                if key not in PER_OCCURRENCE_CUSTOM_FIELDS
            }
        if isinstance(activity, MeetingActivity):
            data["attendees"] = [
                {**attendee, "status": "pending"} for attendee in activity.attendees or []
            ]
            if activity.end_at is not None:
                data["end_at"] = activity.end_at + (next_date - base_date)

        data["checklist"] = reset_checklist(activity.checklist)
        data.update(
            {
                "kind": activity.kind,
                "organization_id": activity.organization_id,
                "is_completed": False,
                "completed_at": None,
                "progress": 0,
                "scheduled_at": next_date,
                "due_date": next_date,
                "next_occurrence": None,
                "recurrence_source_id": activity.recurrence_source_id or activity.id,
                "created_at": now,
                "updated_at": now,
            }
        )
        self._apply_creation_policy(ActivityKind(activity.kind), data, now)
        return data

    # ------------------------------------------------------------------
    # Support tickets
    # ------------------------------------------------------------------

    def escalate_ticket(
        self,
        activity_id: UUID,
        organization_id: UUID,
        escalate_to: UUID,
        reason: str | None = None,
        user_id: UUID | None = None,
    ) -> ActivityResult:
        """Escalate a support ticket to another user.

        Raises:
            ActivityNotFoundError: If no support ticket with this ID exists
            InvalidTransitionError: If the ticket is already resolved or closed
        """
        ticket = self._get_ticket(activity_id, organization_id)
        now = self.clock()

        ticket.ticket_status = TicketStateMachine.validate_escalation(ticket.ticket_status).value
        ticket.escalated_to = escalate_to
        ticket.escalated_at = now
        custom_fields = dict(ticket.custom_fields or {})
        custom_fields["escalation_reason"] = reason
        ticket.custom_fields = custom_fields
        self.check_sla_breach(ticket, now)
        ticket.updated_at = now
        ticket = self.repository.save(ticket)

        log_activity_event(
            "ticket.escalated",
            ticket.id,
            organization_id,
            user_id,
            {"escalated_to": str(escalate_to), "ticket_number": ticket.ticket_number},
        )
        result = ActivityResult(activity=ticket)
        result.notifications.append(
            PendingNotification("ticket.escalated", escalate_to, {"reason": reason})
        )
        return result

    def rate_ticket(
        self,
        activity_id: UUID,
        organization_id: UUID,
        rating: int,
        feedback: str | None = None,
    ) -> ActivityResult:
        """Store the customer's satisfaction rating (1-5) on a ticket."""
        if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
            raise ActivityValidationError("Rating must be an integer between 1 and 5", field="rating")

        ticket = self._get_ticket(activity_id, organization_id)
        now = self.clock()
        ticket.satisfaction_rating = rating
        ticket.satisfaction_feedback = feedback
        self.check_sla_breach(ticket, now)
        ticket.updated_at = now
        return ActivityResult(activity=self.repository.save(ticket))

    def check_sla_breach(self, activity: Activity, now: datetime | None = None) -> bool:
        """Flag an open ticket whose SLA deadline has passed.

        The flag is sticky: it is never cleared here, even if ``now`` moves
        back before the deadline.

        Returns:
            Current value of ``sla_breached`` (False for non-tickets).
        """
        if not isinstance(activity, SupportTicket):
            return False
        if not activity.sla_breached and is_sla_breached(
            activity.sla_due_at, activity.is_completed, now or self.clock()
        ):
            activity.sla_breached = True
            logger.warning(f"SLA breached for ticket {activity.ticket_number} ({activity.id})")
        return bool(activity.sla_breached)

    def _get_ticket(self, activity_id: UUID, organization_id: UUID) -> SupportTicket:
        activity = self.repository.get_by_id(activity_id, organization_id)
        if not isinstance(activity, SupportTicket):
            raise ActivityNotFoundError(activity_id, kind=ActivityKind.SUPPORT_TICKET.value)
        return activity

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_activity(self, activity_id: UUID, organization_id: UUID) -> None:
        """Delete an activity.

        Raises:
            ActivityNotFoundError: If the activity does not exist in the organization
        """
        if not self.repository.delete(activity_id, organization_id):
            raise ActivityNotFoundError(activity_id)
        logger.info(f"Activity deleted: {activity_id}")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def dispatch_notifications(self, result: ActivityResult) -> ActivityResult:
        """Send the notifications queued by a committed operation.

        Delivery failures never propagate: they are logged, recorded under
        ``custom_fields["notification_errors"]`` and returned as warnings.
        """
        errors = []
        for pending in result.notifications:
            try:
                await self.notifier.notify(
                    pending.event_type, pending.recipient_id, result.activity, pending.extra
                )
            except Exception as e:
                logger.error(
                    f"Failed to send {pending.event_type} notification for activity "
                    f"{result.activity.id}: {e}",
                    exc_info=True,
                )
                errors.append(
                    {
                        "event": pending.event_type,
                        "recipient_id": str(pending.recipient_id),
                        "error": str(e),
                        "at": self.clock().isoformat(),
                    }
                )
                result.warnings.append(
                    f"Notification '{pending.event_type}' to {pending.recipient_id} failed: {e}"
                )
        result.notifications = []

        if errors:
            activity = result.activity
            custom_fields = dict(activity.custom_fields or {})
            custom_fields["notification_errors"] = [
                *custom_fields.get("notification_errors", []),
                *errors,
            ]
            activity.custom_fields = custom_fields
            result.activity = self.repository.save(activity)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_kind(kind: ActivityKind | str) -> ActivityKind:
        try:
            return ActivityKind(kind)
        except ValueError:
            allowed = ", ".join(k.value for k in ActivityKind)
            raise ActivityValidationError(
                f"Unknown activity kind '{kind}'. Allowed values: {allowed}", field="kind"
            ) from None

    @staticmethod
    def _reject_fields(fields: dict[str, Any], forbidden: frozenset[str], reason: str) -> None:
        for key in sorted(fields):
            if key in forbidden:
                raise ActivityValidationError(f"Field '{key}' {reason}", field=key)

    def _prepare_fields(
        self, kind: ActivityKind, fields: dict[str, Any], now: datetime
    ) -> dict[str, Any]:
        """Validate caller-supplied fields against the kind's columns and normalize values."""
        mapper = sa_inspect(activity_class_for(kind))
        columns = {attr.key for attr in mapper.column_attrs}
        prepared: dict[str, Any] = {}

        for key, value in fields.items():
            if key not in columns:
                raise ActivityValidationError(
                    f"Field '{key}' is not valid for activity kind '{kind.value}'", field=key
                )
            if value is None and not mapper.columns[key].nullable:
                raise ActivityValidationError(f"Field '{key}' cannot be null", field=key)
            prepared[key] = value.value if isinstance(value, Enum) else value

        if prepared.get("priority") is not None:
            try:
                prepared["priority"] = ActivityPriority(prepared["priority"]).value
            except ValueError:
                raise ActivityValidationError(
                    f"Unknown priority '{prepared['priority']}'", field="priority"
                ) from None
        if "progress" in prepared and prepared["progress"] is not None:
            if not 0 <= prepared["progress"] <= 100:
                raise ActivityValidationError("Progress must be between 0 and 100", field="progress")
        if "recurrence_interval" in prepared:
            interval = prepared["recurrence_interval"]
            if interval is None or interval < 1:
                raise ActivityValidationError(
                    "Recurrence interval must be a positive integer", field="recurrence_interval"
                )
        if "checklist" in prepared:
            prepared["checklist"] = normalize_checklist(prepared["checklist"], now)
        if "attendees" in prepared:
            prepared["attendees"] = normalize_attendees(prepared["attendees"])
        if "custom_fields" in prepared and prepared["custom_fields"] is not None:
            prepared["custom_fields"] = dict(prepared["custom_fields"])
        return prepared

    def _apply_creation_policy(
        self, kind: ActivityKind, activity_data: dict[str, Any], now: datetime
    ) -> None:
        """Fill in generated fields before an activity is first persisted."""
        if activity_data.get("priority") is None:
            activity_data["priority"] = ActivityPriority.MEDIUM.value
        if activity_data.get("checklist"):
            activity_data["progress"] = compute_progress(activity_data["checklist"])

        if kind is not ActivityKind.SUPPORT_TICKET:
            return

        if not activity_data.get("ticket_number"):
            activity_data["ticket_number"] = self._new_ticket_number(now)
        if activity_data.get("severity") and not activity_data.get("sla_due_at"):
            activity_data["sla_due_at"] = compute_sla_due_at(now, activity_data["severity"])
        activity_data["ticket_status"] = TicketStateMachine.validate_initial_status(
            activity_data.get("ticket_status")
        ).value
        activity_data["sla_breached"] = False

    def _new_ticket_number(self, now: datetime) -> str:
        for _ in range(MAX_TICKET_NUMBER_ATTEMPTS):
            ticket_number = generate_ticket_number(now, self.settings.TICKET_NUMBER_PREFIX)
            if not self.repository.ticket_number_exists(ticket_number):
                return ticket_number
        raise RuntimeError("Could not generate a unique ticket number")
