"""Database models."""

from app.models.activity import (
    ACTIVITY_CLASSES,
    Activity,
    ActivityKind,
    ActivityPriority,
    AttendeeStatus,
    CallActivity,
    DemoActivity,
    EmailActivity,
    MeetingActivity,
    NoteActivity,
    ProposalActivity,
    RecurrencePattern,
    SupportTicket,
    TaskActivity,
    TicketSeverity,
    TicketStatus,
)

__all__ = [
    "ACTIVITY_CLASSES",
    "Activity",
    "ActivityKind",
    "ActivityPriority",
    "AttendeeStatus",
    "CallActivity",
    "DemoActivity",
    "EmailActivity",
    "MeetingActivity",
    "NoteActivity",
    "ProposalActivity",
    "RecurrencePattern",
    "SupportTicket",
    "TaskActivity",
    "TicketSeverity",
    "TicketStatus",
]
