"""Create activities table: activities

Revision ID: create_activities_table
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "create_activities_table"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")
TIMESTAMP = sa.DateTime(timezone=True)


def upgrade() -> None:
    # Single table for every activity kind, discriminated by "kind"
    op.create_table(
        "activities",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(length=30), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("assigned_to", sa.Uuid(), nullable=True),
        sa.Column("contact_id", sa.Uuid(), nullable=True),
        sa.Column("deal_id", sa.Uuid(), nullable=True),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("scheduled_at", TIMESTAMP, nullable=True),
        sa.Column("due_date", TIMESTAMP, nullable=True),
        sa.Column("completed_at", TIMESTAMP, nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("actual_hours", sa.Float(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("recurrence_pattern", sa.String(length=20), nullable=True),
        sa.Column("recurrence_interval", sa.Integer(), nullable=False),
        sa.Column("recurrence_end_date", TIMESTAMP, nullable=True),
        sa.Column("next_occurrence", TIMESTAMP, nullable=True),
        sa.Column("recurrence_source_id", sa.Uuid(), nullable=True),
        sa.Column("reminder_at", TIMESTAMP, nullable=True),
        sa.Column("snoozed_until", TIMESTAMP, nullable=True),
        sa.Column("reminder_sent", sa.Boolean(), nullable=False),
        sa.Column("checklist", JSON, nullable=True),
        sa.Column("custom_fields", JSON, nullable=True),
        sa.Column("created_at", TIMESTAMP, nullable=False),
        sa.Column("updated_at", TIMESTAMP, nullable=False),
        # call
        sa.Column("call_direction", sa.String(length=20), nullable=True),
        sa.Column("call_duration_seconds", sa.Integer(), nullable=True),
        sa.Column("call_outcome", sa.String(length=100), nullable=True),
        sa.Column("phone_number", sa.String(length=50), nullable=True),
        # email
        sa.Column("email_to", sa.String(length=255), nullable=True),
        sa.Column("email_cc", JSON, nullable=True),
        sa.Column("email_status", sa.String(length=20), nullable=True),
        # meeting / demo
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("meeting_url", sa.String(length=500), nullable=True),
        sa.Column("end_at", TIMESTAMP, nullable=True),
        sa.Column("attendees", JSON, nullable=True),
        # proposal
        sa.Column("proposal_amount", sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column("proposal_status", sa.String(length=20), nullable=True),
        # support_ticket
        sa.Column("ticket_number", sa.String(length=40), nullable=True),
        sa.Column("severity", sa.String(length=20), nullable=True),
        sa.Column("ticket_status", sa.String(length=30), nullable=True),
        sa.Column("sla_due_at", TIMESTAMP, nullable=True),
        sa.Column("sla_breached", sa.Boolean(), nullable=True),
        sa.Column("resolution_time_minutes", sa.Integer(), nullable=True),
        sa.Column("escalated_to", sa.Uuid(), nullable=True),
        sa.Column("escalated_at", TIMESTAMP, nullable=True),
        sa.Column("satisfaction_rating", sa.Integer(), nullable=True),
        sa.Column("satisfaction_feedback", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ticket_number"),
    )
    op.create_index("ix_activities_organization_id", "activities", ["organization_id"], unique=False)
    op.create_index("ix_activities_kind", "activities", ["kind"], unique=False)
    op.create_index("ix_activities_user_id", "activities", ["user_id"], unique=False)
    op.create_index("ix_activities_assigned_to", "activities", ["assigned_to"], unique=False)
    op.create_index("ix_activities_contact_id", "activities", ["contact_id"], unique=False)
    op.create_index("ix_activities_deal_id", "activities", ["deal_id"], unique=False)
    op.create_index("ix_activities_parent_id", "activities", ["parent_id"], unique=False)
    op.create_index("ix_activities_priority", "activities", ["priority"], unique=False)
    op.create_index("ix_activities_scheduled_at", "activities", ["scheduled_at"], unique=False)
    op.create_index("ix_activities_due_date", "activities", ["due_date"], unique=False)
    op.create_index("ix_activities_is_completed", "activities", ["is_completed"], unique=False)
    op.create_index("ix_activities_recurrence_source_id", "activities", ["recurrence_source_id"], unique=False)
    op.create_index("ix_activities_created_at", "activities", ["created_at"], unique=False)
    op.create_index("ix_activities_ticket_status", "activities", ["ticket_status"], unique=False)
    op.create_index("idx_activities_org_created", "activities", ["organization_id", "created_at"], unique=False)
    op.create_index("idx_activities_org_kind", "activities", ["organization_id", "kind"], unique=False)
    op.create_index(
        "idx_activities_org_completed_due",
        "activities",
        ["organization_id", "is_completed", "due_date"],
        unique=False,
    )


def downgrade() -> None:
    # Indexes are dropped with the table
    op.drop_table("activities")
