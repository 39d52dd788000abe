"""Activities router: CRUD plus lifecycle operations."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.activities.service import ActivityResult, ActivityService
from app.core.auth.dependencies import CurrentUser, require_permission
from app.core.auth.permissions import ACTIVITIES_MANAGE, ACTIVITIES_VIEW
from app.core.db.deps import get_db
from app.core.notifications import ActivityNotificationService
from app.models.activity import ActivityKind, TicketStatus
from app.schemas.activity import (
    ActivityCreate,
    ActivityResponse,
    ActivityStatsResponse,
    ActivityUpdate,
    AttendeeStatusUpdate,
    ChecklistUpdate,
    EscalateRequest,
    LogCallRequest,
    RateRequest,
    SnoozeRequest,
)
from app.schemas.common import PaginationMeta, StandardListResponse, StandardResponse

router = APIRouter()

# Stored in JSON columns, so nested values must be JSON-ready
JSON_FIELDS = ("checklist", "attendees", "email_cc")


def get_notification_service() -> ActivityNotificationService:
    """Dependency to get the notifier; override to plug in a user directory lookup."""
    return ActivityNotificationService()


def get_activity_service(
    db: Annotated[Session, Depends(get_db)],
    notifier: Annotated[ActivityNotificationService, Depends(get_notification_service)],
) -> ActivityService:
    """Dependency to get ActivityService."""
    return ActivityService(db, notifier=notifier)


def _payload(schema: BaseModel, **dump_options: Any) -> dict[str, Any]:
    data = schema.model_dump(**dump_options)
    json_data = schema.model_dump(mode="json", include=set(JSON_FIELDS) & set(data))
    data.update(json_data)
    return data


async def _respond(
    service: ActivityService, result: ActivityResult, message: str | None = None
) -> StandardResponse[ActivityResponse]:
    """Send queued notifications and wrap the activity in the standard envelope."""
    result = await service.dispatch_notifications(result)
    meta: dict[str, Any] = {}
    if message:
        meta["message"] = message
    if result.spawned is not None:
        meta["next_activity"] = ActivityResponse.model_validate(result.spawned).model_dump(
            mode="json"
        )
    if result.warnings:
        meta["warnings"] = result.warnings
    return StandardResponse(
        data=ActivityResponse.model_validate(result.activity),
        meta=meta or None,
    )


@router.post(
    "",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create activity",
    description="Create an activity of any kind. Requires activities.manage permission.",
)
async def create_activity(
    activity_data: Annotated[ActivityCreate, Body(discriminator="kind")],
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityResponse]:
    """Create a new activity."""
    data = _payload(activity_data, exclude={"kind"}, exclude_none=True)
    result = service.create_activity(
        current_user.organization_id,
        activity_data.kind,
        data,
        user_id=current_user.id,
    )
    return await _respond(service, result, "Activity created successfully")


@router.post(
    "/log-call",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Log call",
    description="Record a call that already happened. Requires activities.manage permission.",
)
async def log_call(
    call_data: LogCallRequest,
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityResponse]:
    """Log a completed call."""
    result = service.log_call(
        current_user.organization_id,
        call_data.model_dump(exclude_none=True),
        user_id=current_user.id,
    )
    return await _respond(service, result, "Call logged successfully")


@router.get(
    "",
    response_model=StandardListResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="List activities",
    description="List activities with optional filters. Requires activities.view permission.",
)
async def list_activities(
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_VIEW))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Page size"),
    kind: ActivityKind | None = Query(None, description="Filter by activity kind"),
    is_completed: bool | None = Query(None, description="Filter by completion"),
    contact_id: UUID | None = Query(None, description="Filter by contact"),
    deal_id: UUID | None = Query(None, description="Filter by deal"),
    assigned_to: UUID | None = Query(None, description="Filter by assignee"),
    ticket_status: TicketStatus | None = Query(None, description="Filter by ticket status"),
) -> StandardListResponse[ActivityResponse]:
    """List activities."""
    skip = (page - 1) * page_size
    activities, total = service.list_activities(
        current_user.organization_id,
        skip=skip,
        limit=page_size,
        kind=kind.value if kind else None,
        is_completed=is_completed,
        contact_id=contact_id,
        deal_id=deal_id,
        assigned_to=assigned_to,
        ticket_status=ticket_status.value if ticket_status else None,
    )
    return StandardListResponse(
        data=[ActivityResponse.model_validate(a) for a in activities],
        meta=PaginationMeta.build(total, page, page_size),
    )


@router.get(
    "/stats",
    response_model=StandardResponse[ActivityStatsResponse],
    status_code=status.HTTP_200_OK,
    summary="Activity statistics",
    description="Counters by state and kind. Requires activities.view permission.",
)
async def get_activity_stats(
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_VIEW))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityStatsResponse]:
    stats = service.get_stats(current_user.organization_id)
    return StandardResponse(data=ActivityStatsResponse(**stats))


@router.get(
    "/overdue",
    response_model=StandardListResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="List overdue activities",
    description="Open activities past their due date. Requires activities.view permission.",
)
async def list_overdue_activities(
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_VIEW))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Page size"),
) -> StandardListResponse[ActivityResponse]:
    skip = (page - 1) * page_size
    activities, total = service.get_overdue_activities(
        current_user.organization_id, skip=skip, limit=page_size
    )
    return StandardListResponse(
        data=[ActivityResponse.model_validate(a) for a in activities],
        meta=PaginationMeta.build(total, page, page_size),
    )


@router.get(
    "/{activity_id}",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="Get activity",
    description="Get a specific activity by ID. Requires activities.view permission.",
)
async def get_activity(
    activity_id: Annotated[UUID, Path(..., description="Activity ID")],
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_VIEW))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityResponse]:
    """Get a specific activity."""
    activity = service.get_activity(activity_id, current_user.organization_id)
    return StandardResponse(data=ActivityResponse.model_validate(activity))


@router.put(
    "/{activity_id}",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="Update activity",
    description="Partially update an activity. Requires activities.manage permission.",
)
async def update_activity(
    activity_id: Annotated[UUID, Path(..., description="Activity ID")],
    activity_data: ActivityUpdate,
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityResponse]:
    """Update an activity."""
    result = service.update_activity(
        activity_id,
        current_user.organization_id,
        _payload(activity_data, exclude_unset=True),
        user_id=current_user.id,
    )
    return await _respond(service, result, "Activity updated successfully")


@router.delete(
    "/{activity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete activity",
    description="Delete an activity. Requires activities.manage permission.",
)
async def delete_activity(
    activity_id: Annotated[UUID, Path(..., description="Activity ID")],
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> None:
    """Delete an activity."""
    service.delete_activity(activity_id, current_user.organization_id)


@router.put(
    "/{activity_id}/complete",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="Complete activity",
    description=(
        "Mark an activity completed. Recurring activities get their next occurrence, "
        "returned as meta.next_activity. Requires activities.manage permission."
    ),
)
async def complete_activity(
    activity_id: Annotated[UUID, Path(..., description="Activity ID")],
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityResponse]:
    result = service.complete_activity(
        activity_id, current_user.organization_id, user_id=current_user.id
    )
    return await _respond(service, result, "Activity completed successfully")


@router.put(
    "/{activity_id}/checklist",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="Update checklist item",
    description="Toggle, rename or append a checklist item. Requires activities.manage permission.",
)
async def update_checklist(
    activity_id: Annotated[UUID, Path(..., description="Activity ID")],
    checklist_data: ChecklistUpdate,
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityResponse]:
    result = service.update_checklist(
        activity_id,
        current_user.organization_id,
        item_id=checklist_data.item_id,
        completed=checklist_data.completed,
        text=checklist_data.text,
    )
    return await _respond(service, result)


@router.put(
    "/{activity_id}/attendee-status",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="Update attendee status",
    description="Record an attendee's response to a meeting or demo. Requires activities.manage permission.",
)
async def update_attendee_status(
    activity_id: Annotated[UUID, Path(..., description="Activity ID")],
    attendee_data: AttendeeStatusUpdate,
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityResponse]:
    result = service.update_attendee_status(
        activity_id,
        current_user.organization_id,
        attendee_data.attendee,
        attendee_data.status.value,
    )
    return await _respond(service, result)


@router.put(
    "/{activity_id}/escalate",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="Escalate ticket",
    description="Escalate a support ticket to another user. Requires activities.manage permission.",
)
async def escalate_ticket(
    activity_id: Annotated[UUID, Path(..., description="Support ticket ID")],
    escalation: EscalateRequest,
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityResponse]:
    result = service.escalate_ticket(
        activity_id,
        current_user.organization_id,
        escalation.escalate_to,
        reason=escalation.reason,
        user_id=current_user.id,
    )
    return await _respond(service, result, "Ticket escalated successfully")


@router.put(
    "/{activity_id}/rate",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="Rate ticket",
    description="Store a satisfaction rating on a support ticket. Requires activities.manage permission.",
)
async def rate_ticket(
    activity_id: Annotated[UUID, Path(..., description="Support ticket ID")],
    rating_data: RateRequest,
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
) -> StandardResponse[ActivityResponse]:
    result = service.rate_ticket(
        activity_id,
        current_user.organization_id,
        rating_data.rating,
        feedback=rating_data.feedback,
    )
    return await _respond(service, result)


@router.put(
    "/{activity_id}/snooze",
    response_model=StandardResponse[ActivityResponse],
    status_code=status.HTTP_200_OK,
    summary="Snooze reminder",
    description="Push an activity reminder back. Requires activities.manage permission.",
)
async def snooze_reminder(
    activity_id: Annotated[UUID, Path(..., description="Activity ID")],
    current_user: Annotated[CurrentUser, Depends(require_permission(ACTIVITIES_MANAGE))],
    service: Annotated[ActivityService, Depends(get_activity_service)],
    snooze_data: SnoozeRequest | None = None,
) -> StandardResponse[ActivityResponse]:
    minutes = snooze_data.minutes if snooze_data else None
    result = service.snooze_reminder(activity_id, current_user.organization_id, minutes)
    return await _respond(service, result)
