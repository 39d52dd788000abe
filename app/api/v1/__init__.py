"""API v1 router aggregation."""

from fastapi import APIRouter

from app.api.v1 import activities

api_router = APIRouter()

api_router.include_router(activities.router, prefix="/activities", tags=["activities"])
