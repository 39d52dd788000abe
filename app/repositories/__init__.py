"""Repositories for data access."""

from app.repositories.activity_repository import ActivityRepository

__all__ = ["ActivityRepository"]
