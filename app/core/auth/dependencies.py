"""FastAPI dependencies for authentication and authorization."""

from dataclasses import dataclass, field
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from app.core.auth.jwt import decode_token
from app.core.auth.permissions import has_permission, permissions_for_roles
from app.core.exceptions import raise_forbidden, raise_unauthorized
from app.core.logging import get_client_info, log_invalid_token, log_permission_denied

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


@dataclass
class CurrentUser:
    """Caller identity as asserted by the access token."""

    id: UUID
    organization_id: UUID
    roles: list[str] = field(default_factory=list)
    permissions: set[str] = field(default_factory=set)


def _parse_uuid_claim(payload: dict, claim: str) -> UUID:
    value = payload.get(claim)
    if not value:
        log_invalid_token(f"missing {claim}")
        raise_unauthorized("AUTH_INVALID_TOKEN", f"Token missing {claim}")
    try:
        return UUID(str(value))
    except ValueError:
        log_invalid_token(f"invalid {claim}")
        raise_unauthorized("AUTH_INVALID_TOKEN", f"Invalid {claim} in token")


async def get_current_user(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> CurrentUser:
    """
    Get the current caller from the JWT access token.

    The token is trusted to carry the caller's organization; every activity
    query is scoped by it.

    Raises:
        APIException: 401 if the token is missing, invalid or expired.
    """
    if not token:
        raise_unauthorized("AUTH_UNAUTHORIZED", "Not authenticated")

    ip_address, _ = get_client_info(request)
    payload = decode_token(token)
    if payload is None:
        log_invalid_token("decode failed", ip_address)
        raise_unauthorized("AUTH_INVALID_TOKEN", "Invalid or expired token")

    if payload.get("type") != "access":
        log_invalid_token("wrong token type", ip_address)
        raise_unauthorized("AUTH_INVALID_TOKEN", "Invalid token type")

    roles = list(payload.get("roles") or [])
    permissions = set(payload.get("permissions") or []) | permissions_for_roles(roles)

    return CurrentUser(
        id=_parse_uuid_claim(payload, "sub"),
        organization_id=_parse_uuid_claim(payload, "organization_id"),
        roles=roles,
        permissions=permissions,
    )


def require_permission(permission: str):
    """
    Dependency factory to require a specific permission.

    Usage:
        @router.get("/activities")
        async def list_activities(
            user: CurrentUser = Depends(require_permission("activities.view")),
        ):
            ...

    Args:
        permission: Required permission string (e.g., "activities.view").

    Returns:
        Dependency function that raises APIException if user lacks permission.
    """
    async def permission_check(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        if not has_permission(current_user.permissions, permission):
            log_permission_denied(str(current_user.id), permission)
            raise_forbidden(details={"required_permission": permission})
        return current_user

    return permission_check
