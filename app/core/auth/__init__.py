"""Authentication and authorization core module."""

from app.core.auth.jwt import create_access_token, decode_token
from app.core.auth.permissions import ROLE_PERMISSIONS, has_permission

__all__ = [
    "create_access_token",
    "decode_token",
    "ROLE_PERMISSIONS",
    "has_permission",
]
