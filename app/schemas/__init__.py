"""Pydantic schemas for API requests and responses."""

from app.schemas.activity import (
    ActivityCreate,
    ActivityResponse,
    ActivityStatsResponse,
    ActivityUpdate,
)
from app.schemas.common import (
    PaginationMeta,
    StandardListResponse,
    StandardResponse,
)

__all__ = [
    "ActivityCreate",
    "ActivityResponse",
    "ActivityStatsResponse",
    "ActivityUpdate",
    "PaginationMeta",
    "StandardListResponse",
    "StandardResponse",
]
