"""Activity models: one envelope table, one mapped class per activity kind."""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)

from app.core.db.session import Base
from app.core.db.types import JSONType, UTCDateTime


class ActivityKind(str, Enum):
    """Closed set of activity kinds (the polymorphic discriminator)."""

    NOTE = "note"
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    TASK = "task"
    DEMO = "demo"
    PROPOSAL = "proposal"
    SUPPORT_TICKET = "support_ticket"


class ActivityPriority(str, Enum):
    """Activity priority enumeration."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RecurrencePattern(str, Enum):
    """Supported recurrence patterns."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TicketSeverity(str, Enum):
    """Support ticket severity, drives the SLA deadline."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TicketStatus(str, Enum):
    """Support ticket status enumeration."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_CUSTOMER = "pending_customer"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    CLOSED = "closed"


class AttendeeStatus(str, Enum):
    """Meeting attendee response."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"


class CallDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class EmailStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


class ProposalStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Activity(Base):
    """Common envelope shared by every activity kind.

    Rows are always loaded as the subclass selected by ``kind``; kind-specific
    columns are only mapped on the subclass that owns them.
    """

    __tablename__ = "activities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    organization_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    kind = Column(String(30), nullable=False, index=True)

    # Ownership and links (plain references, never eagerly loaded)
    user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    assigned_to = Column(Uuid(as_uuid=True), nullable=True, index=True)
    contact_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    deal_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    parent_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    # Activity information
    subject = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    priority = Column(String(20), nullable=False, default=ActivityPriority.MEDIUM.value, index=True)

    # Scheduling and completion
    scheduled_at = Column(UTCDateTime, nullable=True, index=True)
    due_date = Column(UTCDateTime, nullable=True, index=True)
    completed_at = Column(UTCDateTime, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False, index=True)
    progress = Column(Integer, nullable=False, default=0)
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)

    # Recurrence
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurrence_pattern = Column(String(20), nullable=True)
    recurrence_interval = Column(Integer, nullable=False, default=1)
    recurrence_end_date = Column(UTCDateTime, nullable=True)
    next_occurrence = Column(UTCDateTime, nullable=True)
    recurrence_source_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    # Reminders
    reminder_at = Column(UTCDateTime, nullable=True)
    snoozed_until = Column(UTCDateTime, nullable=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)

    # Sub-state and extensibility
    checklist = Column(JSONType, nullable=True)  # [{id, text, completed, completed_at}]
    custom_fields = Column(JSONType, nullable=True)

    # Timestamps
    created_at = Column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    updated_at = Column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __mapper_args__ = {"polymorphic_on": kind}

    __table_args__ = (
        Index("idx_activities_org_created", "organization_id", "created_at"),
        Index("idx_activities_org_kind", "organization_id", "kind"),
        Index("idx_activities_org_completed_due", "organization_id", "is_completed", "due_date"),
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id}, kind={self.kind}, completed={self.is_completed})>"


class NoteActivity(Activity):
    __mapper_args__ = {"polymorphic_identity": ActivityKind.NOTE.value}


class TaskActivity(Activity):
    __mapper_args__ = {"polymorphic_identity": ActivityKind.TASK.value}


class CallActivity(Activity):
    """Logged or scheduled phone call."""

    call_direction = Column(String(20), nullable=True)
    call_duration_seconds = Column(Integer, nullable=True)
    call_outcome = Column(String(100), nullable=True)
    phone_number = Column(String(50), nullable=True)

    __mapper_args__ = {"polymorphic_identity": ActivityKind.CALL.value}


class EmailActivity(Activity):
    """Email sent to (or scheduled for) a contact."""

    email_to = Column(String(255), nullable=True)
    email_cc = Column(JSONType, nullable=True)
    email_status = Column(String(20), nullable=True)

    __mapper_args__ = {"polymorphic_identity": ActivityKind.EMAIL.value}


class MeetingActivity(Activity):
    """Meeting with an attendee list."""

    location = Column(String(255), nullable=True)
    meeting_url = Column(String(500), nullable=True)
    end_at = Column(UTCDateTime, nullable=True)
    attendees = Column(JSONType, nullable=True)  # [{id, email, name, status}]

    __mapper_args__ = {"polymorphic_identity": ActivityKind.MEETING.value}


class DemoActivity(MeetingActivity):
    """Product demo; scheduled and attended like a meeting."""

    __mapper_args__ = {"polymorphic_identity": ActivityKind.DEMO.value}


class ProposalActivity(Activity):
    proposal_amount = Column(Numeric(14, 2), nullable=True)
    proposal_status = Column(String(20), nullable=True)

    __mapper_args__ = {"polymorphic_identity": ActivityKind.PROPOSAL.value}


class SupportTicket(Activity):
    """Support ticket with SLA tracking and escalation."""

    ticket_number = Column(String(40), nullable=True, unique=True)
    severity = Column(String(20), nullable=True)
    ticket_status = Column(String(30), nullable=True, index=True)
    sla_due_at = Column(UTCDateTime, nullable=True)
    sla_breached = Column(Boolean, nullable=True, default=False)
    resolution_time_minutes = Column(Integer, nullable=True)
    escalated_to = Column(Uuid(as_uuid=True), nullable=True)
    escalated_at = Column(UTCDateTime, nullable=True)
    satisfaction_rating = Column(Integer, nullable=True)
    satisfaction_feedback = Column(Text, nullable=True)

    __mapper_args__ = {"polymorphic_identity": ActivityKind.SUPPORT_TICKET.value}


ACTIVITY_CLASSES: dict[ActivityKind, type[Activity]] = {
    ActivityKind.NOTE: NoteActivity,
    ActivityKind.TASK: TaskActivity,
    ActivityKind.CALL: CallActivity,
    ActivityKind.EMAIL: EmailActivity,
    ActivityKind.MEETING: MeetingActivity,
    ActivityKind.DEMO: DemoActivity,
    ActivityKind.PROPOSAL: ProposalActivity,
    ActivityKind.SUPPORT_TICKET: SupportTicket,
}


def activity_class_for(kind: ActivityKind | str) -> type[Activity]:
    """Return the mapped class for an activity kind."""
    return ACTIVITY_CLASSES[ActivityKind(kind)]
