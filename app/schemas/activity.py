"""Activity schemas for API requests and responses."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.activity import (
    ActivityKind,
    ActivityPriority,
    AttendeeStatus,
    CallDirection,
    EmailStatus,
    ProposalStatus,
    RecurrencePattern,
    TicketSeverity,
    TicketStatus,
)


class ChecklistItem(BaseModel):
    """Checklist entry; ``id`` is generated when omitted."""

    id: str | None = None
    text: str = Field(..., description="Item text", max_length=500)
    completed: bool = False
    completed_at: datetime | None = None


class Attendee(BaseModel):
    """Meeting attendee; ``id`` is generated when omitted."""

    id: str | None = None
    email: str | None = Field(None, max_length=255)
    name: str | None = Field(None, max_length=255)
    status: AttendeeStatus = AttendeeStatus.PENDING


class ActivityBase(BaseModel):
    """Fields shared by every activity kind."""

    subject: str | None = Field(None, description="Activity subject", max_length=255)
    description: str | None = Field(None, description="Activity description")
    priority: ActivityPriority = Field(ActivityPriority.MEDIUM, description="Activity priority")
    scheduled_at: datetime | None = Field(None, description="When the activity takes place")
    due_date: datetime | None = Field(None, description="Due date")
    assigned_to: UUID | None = Field(None, description="Assigned user ID")
    contact_id: UUID | None = Field(None, description="Related contact ID")
    deal_id: UUID | None = Field(None, description="Related deal ID")
    parent_id: UUID | None = Field(None, description="Parent activity ID")
    estimated_hours: float | None = Field(None, ge=0)
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_interval: int = Field(1, ge=1, description="Repeat every N periods")
    recurrence_end_date: datetime | None = None
    reminder_at: datetime | None = None
    checklist: list[ChecklistItem] | None = None
    custom_fields: dict[str, Any] | None = None


class NoteCreate(ActivityBase):
    kind: Literal["note"]


class TaskCreate(ActivityBase):
    kind: Literal["task"]


class CallCreate(ActivityBase):
    kind: Literal["call"]
    call_direction: CallDirection | None = None
    call_duration_seconds: int | None = Field(None, ge=0)
    call_outcome: str | None = Field(None, max_length=100)
    phone_number: str | None = Field(None, max_length=50)


class EmailCreate(ActivityBase):
    kind: Literal["email"]
    email_to: str | None = Field(None, max_length=255)
    email_cc: list[str] | None = None
    email_status: EmailStatus | None = None


class MeetingCreate(ActivityBase):
    kind: Literal["meeting"]
    location: str | None = Field(None, max_length=255)
    meeting_url: str | None = Field(None, max_length=500)
    end_at: datetime | None = None
    attendees: list[Attendee] | None = None


class DemoCreate(MeetingCreate):
    kind: Literal["demo"]


class ProposalCreate(ActivityBase):
    kind: Literal["proposal"]
    proposal_amount: Decimal | None = Field(None, ge=0)
    proposal_status: ProposalStatus | None = None


class SupportTicketCreate(ActivityBase):
    """Support ticket; ``ticket_number`` and ``sla_due_at`` are generated when omitted."""

    kind: Literal["support_ticket"]
    severity: TicketSeverity | None = None
    ticket_status: TicketStatus | None = None
    ticket_number: str | None = Field(None, max_length=40)
    sla_due_at: datetime | None = None


ActivityCreate = Annotated[
    NoteCreate
    | TaskCreate
    | CallCreate
    | EmailCreate
    | MeetingCreate
    | DemoCreate
    | ProposalCreate
    | SupportTicketCreate,
    Field(discriminator="kind"),
]


class ActivityUpdate(BaseModel):
    """Partial update; fields of another kind are rejected by the service."""

    model_config = ConfigDict(extra="forbid")

    subject: str | None = Field(None, max_length=255)
    description: str | None = None
    priority: ActivityPriority | None = None
    scheduled_at: datetime | None = None
    due_date: datetime | None = None
    assigned_to: UUID | None = None
    contact_id: UUID | None = None
    deal_id: UUID | None = None
    parent_id: UUID | None = None
    progress: int | None = Field(None, ge=0, le=100)
    estimated_hours: float | None = Field(None, ge=0)
    is_recurring: bool | None = None
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_interval: int | None = Field(None, ge=1)
    recurrence_end_date: datetime | None = None
    reminder_at: datetime | None = None
    checklist: list[ChecklistItem] | None = None
    custom_fields: dict[str, Any] | None = None

    call_direction: CallDirection | None = None
    call_duration_seconds: int | None = Field(None, ge=0)
    call_outcome: str | None = Field(None, max_length=100)
    phone_number: str | None = Field(None, max_length=50)
    email_to: str | None = Field(None, max_length=255)
    email_cc: list[str] | None = None
    email_status: EmailStatus | None = None
    location: str | None = Field(None, max_length=255)
    meeting_url: str | None = Field(None, max_length=500)
    end_at: datetime | None = None
    attendees: list[Attendee] | None = None
    proposal_amount: Decimal | None = Field(None, ge=0)
    proposal_status: ProposalStatus | None = None
    severity: TicketSeverity | None = None
    ticket_status: TicketStatus | None = None


class ChecklistUpdate(BaseModel):
    """Toggle or rename an item by id, or append a new one with ``text``."""

    item_id: str | None = None
    completed: bool | None = None
    text: str | None = Field(None, max_length=500)


class AttendeeStatusUpdate(BaseModel):
    attendee: str = Field(..., description="Attendee id or email")
    status: AttendeeStatus


class EscalateRequest(BaseModel):
    escalate_to: UUID = Field(..., description="User the ticket is escalated to")
    reason: str | None = Field(None, max_length=1000)


class RateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5, description="Customer satisfaction, 1 to 5")
    feedback: str | None = None


class SnoozeRequest(BaseModel):
    minutes: int | None = Field(None, ge=1, description="Defaults to 15 minutes")


class LogCallRequest(BaseModel):
    """A call that already happened; stored as a completed call activity."""

    subject: str | None = Field(None, max_length=255)
    description: str | None = None
    scheduled_at: datetime | None = None
    contact_id: UUID | None = None
    deal_id: UUID | None = None
    call_direction: CallDirection = CallDirection.OUTBOUND
    call_duration_seconds: int | None = Field(None, ge=0)
    call_outcome: str | None = Field(None, max_length=100)
    phone_number: str | None = Field(None, max_length=50)


class ActivityResponse(BaseModel):
    """Activity as returned by the API.

    Kind-specific fields are null for kinds that do not carry them.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    kind: ActivityKind
    user_id: UUID | None = None
    assigned_to: UUID | None = None
    contact_id: UUID | None = None
    deal_id: UUID | None = None
    parent_id: UUID | None = None
    subject: str | None = None
    description: str | None = None
    priority: ActivityPriority
    scheduled_at: datetime | None = None
    due_date: datetime | None = None
    completed_at: datetime | None = None
    is_completed: bool
    progress: int
    estimated_hours: float | None = None
    actual_hours: float | None = None
    is_recurring: bool
    recurrence_pattern: str | None = None
    recurrence_interval: int
    recurrence_end_date: datetime | None = None
    next_occurrence: datetime | None = None
    recurrence_source_id: UUID | None = None
    reminder_at: datetime | None = None
    snoozed_until: datetime | None = None
    reminder_sent: bool
    checklist: list[dict[str, Any]] | None = None
    custom_fields: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime

    call_direction: str | None = None
    call_duration_seconds: int | None = None
    call_outcome: str | None = None
    phone_number: str | None = None
    email_to: str | None = None
    email_cc: list[str] | None = None
    email_status: str | None = None
    location: str | None = None
    meeting_url: str | None = None
    end_at: datetime | None = None
    attendees: list[dict[str, Any]] | None = None
    proposal_amount: Decimal | None = None
    proposal_status: str | None = None
    ticket_number: str | None = None
    severity: str | None = None
    ticket_status: str | None = None
    sla_due_at: datetime | None = None
    sla_breached: bool | None = None
    resolution_time_minutes: int | None = None
    escalated_to: UUID | None = None
    escalated_at: datetime | None = None
    satisfaction_rating: int | None = None
    satisfaction_feedback: str | None = None


class ActivityStatsResponse(BaseModel):
    total: int
    completed: int
    pending: int
    overdue: int
    by_kind: dict[str, int]
    open_tickets: int
    sla_breached: int
