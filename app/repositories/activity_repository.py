"""Activity repository for data access operations."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.models.activity import (
    Activity,
    ActivityKind,
    SupportTicket,
    activity_class_for,
)


class ActivityRepository:
    """Repository for activity data access.

    Every read and write is scoped by ``organization_id``.
    """

    def __init__(self, db: Session):
        """Initialize repository with database session."""
        self.db = db

    def create(self, activity_data: dict[str, Any]) -> Activity:
        """Create a new activity of the class selected by ``kind``."""
        data = dict(activity_data)
        model = activity_class_for(data.pop("kind"))
        activity = model(**data)
        self.db.add(activity)
        self.db.commit()
        self.db.refresh(activity)
        return activity

    def get_by_id(self, activity_id: UUID, organization_id: UUID) -> Activity | None:
        """Get activity by ID and organization."""
        return (
            self.db.query(Activity)
            .filter(Activity.id == activity_id, Activity.organization_id == organization_id)
            .first()
        )

    def ticket_number_exists(self, ticket_number: str) -> bool:
        """Ticket numbers are unique across all organizations."""
        return (
            self.db.query(func.count(SupportTicket.id))
            .filter(SupportTicket.ticket_number == ticket_number)
            .scalar()
            or 0
        ) > 0

    def _filtered(
        self,
        organization_id: UUID,
        kind: str | None = None,
        is_completed: bool | None = None,
        contact_id: UUID | None = None,
        deal_id: UUID | None = None,
        assigned_to: UUID | None = None,
        ticket_status: str | None = None,
    ):
        query = self.db.query(Activity).filter(Activity.organization_id == organization_id)
        if kind:
            query = query.filter(Activity.kind == kind)
        if is_completed is not None:
            query = query.filter(Activity.is_completed == is_completed)
        if contact_id:
            query = query.filter(Activity.contact_id == contact_id)
        if deal_id:
            query = query.filter(Activity.deal_id == deal_id)
        if assigned_to:
            query = query.filter(Activity.assigned_to == assigned_to)
        if ticket_status:
            query = query.filter(
                Activity.kind == ActivityKind.SUPPORT_TICKET.value,
                Activity.__table__.c.ticket_status == ticket_status,
            )
        return query

    def get_all(
        self,
        organization_id: UUID,
        skip: int = 0,
        limit: int = 100,
        **filters: Any,
    ) -> list[Activity]:
        """Get activities for an organization, newest first."""
        query = self._filtered(organization_id, **filters)
        return query.order_by(Activity.created_at.desc()).offset(skip).limit(limit).all()

    def count_all(self, organization_id: UUID, **filters: Any) -> int:
        """Count activities matching the same filters as ``get_all``."""
        return self._filtered(organization_id, **filters).count()

    def _overdue(self, organization_id: UUID, now: datetime):
        return self.db.query(Activity).filter(
            Activity.organization_id == organization_id,
            Activity.is_completed.is_(False),
            Activity.due_date.is_not(None),
            Activity.due_date < now,
        )

    def get_overdue(
        self, organization_id: UUID, now: datetime, skip: int = 0, limit: int = 100
    ) -> list[Activity]:
        """Open activities whose due date has passed, oldest deadline first."""
        return (
            self._overdue(organization_id, now)
            .order_by(Activity.due_date.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_overdue(self, organization_id: UUID, now: datetime) -> int:
        return self._overdue(organization_id, now).count()

    def get_stats(self, organization_id: UUID, now: datetime) -> dict[str, Any]:
        """Aggregate counters for the activity dashboard."""
        base = self.db.query(Activity).filter(Activity.organization_id == organization_id)
        total = base.count()
        completed = base.filter(Activity.is_completed.is_(True)).count()
        by_kind = dict(
            self.db.query(Activity.kind, func.count(Activity.id))
            .filter(Activity.organization_id == organization_id)
            .group_by(Activity.kind)
            .all()
        )
        tickets = self.db.query(SupportTicket).filter(
            SupportTicket.organization_id == organization_id
        )
        return {
            "total": total,
            "completed": completed,
            "pending": total - completed,
            "overdue": self.count_overdue(organization_id, now),
            "by_kind": by_kind,
            "open_tickets": tickets.filter(SupportTicket.is_completed.is_(False)).count(),
            "sla_breached": tickets.filter(SupportTicket.sla_breached.is_(True)).count(),
        }

    def save(self, activity: Activity) -> Activity:
        """Persist pending changes on a loaded activity."""
        self.db.commit()
        self.db.refresh(activity)
        return activity

    def complete_if_pending(
        self, activity_id: UUID, organization_id: UUID, values: dict[str, Any]
    ) -> bool:
        """Flip ``is_completed`` false -> true in a single conditional UPDATE.

        The caller owns the transaction: nothing is committed here, so follow-up
        writes (such as the next occurrence) land atomically with the flag.

        Returns:
            True if this call completed the activity, False if it was already
            completed (or does not exist).
        """
        table = Activity.__table__
        statement = (
            update(table)
            .where(
                table.c.id == activity_id,
                table.c.organization_id == organization_id,
                table.c.is_completed.is_(False),
            )
            .values(is_completed=True, **values)
        )
        result = self.db.execute(statement)
        return result.rowcount == 1

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def delete(self, activity_id: UUID, organization_id: UUID) -> bool:
        """Delete an activity."""
        activity = self.get_by_id(activity_id, organization_id)
        if not activity:
            return False
        self.db.delete(activity)
        self.db.commit()
        return True
