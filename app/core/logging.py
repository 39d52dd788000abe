"""Structured logging configuration for security and application events."""

import logging
import sys
from typing import Any

from app.core.config_file import get_settings

settings = get_settings()

# Create logger for security events
security_logger = logging.getLogger("app.security")
security_logger.setLevel(logging.INFO)

# Create logger for application events
app_logger = logging.getLogger("app")
app_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

# Create console handler with structured format
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.DEBUG)

formatter = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
console_handler.setFormatter(formatter)

# Add handler to loggers if not already added
if not app_logger.handlers:
    app_logger.addHandler(console_handler)
# app.security propagates to app, so it shares the console handler

activity_logger = logging.getLogger("app.activities.audit")


def mask_email(email: str) -> str:
    """
    Mask email address for logging (show only first 3 chars and domain).

    Args:
        email: Email address to mask.

    Returns:
        Masked email string (e.g., "tes***@example.com").
    """
    if not email or "@" not in email:
        return "***"

    local_part, domain = email.split("@", 1)

    if len(local_part) <= 3:
        masked_local = "*" * len(local_part)
    else:
        masked_local = local_part[:3] + "***"

    return f"{masked_local}@{domain}"


def log_activity_event(
    event: str,
    activity_id: Any,
    organization_id: Any,
    user_id: Any | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Log an activity lifecycle event (created, completed, escalated, ...).

    Args:
        event: Event name (e.g., 'activity.completed').
        activity_id: Activity UUID.
        organization_id: Owning organization UUID.
        user_id: Acting user, if any.
        details: Additional key/values appended to the line.
    """
    message = f"Activity event - event={event}, activity_id={activity_id}, organization_id={organization_id}"
    if user_id:
        message += f", user_id={user_id}"
    if details:
        message += f", details={details}"

    activity_logger.info(message)


def log_permission_denied(user_id: str, permission: str) -> None:
    """
    Log a rejected permission check.

    Args:
        user_id: User UUID taken from the token.
        permission: Permission that was required.
    """
    security_logger.warning(
        f"Permission denied - user_id={user_id}, required_permission={permission}"
    )


def log_invalid_token(reason: str, ip_address: str | None = None) -> None:
    """
    Log an invalid or expired bearer token.

    Args:
        reason: Reason for rejection.
        ip_address: Client IP address (optional).
    """
    security_logger.warning(
        f"Invalid access token - reason={reason}"
        + (f", ip={ip_address}" if ip_address else "")
    )


def get_client_info(request: Any) -> tuple[str | None, str | None]:
    """
    Extract IP address and user agent from FastAPI request.

    Args:
        request: FastAPI Request object.

    Returns:
        Tuple of (ip_address, user_agent).
    """
    ip_address = None
    if hasattr(request, "client") and request.client:
        ip_address = request.client.host

    # Behind a proxy the first forwarded address is the client
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        ip_address = forwarded_for.split(",")[0].strip()

    user_agent = request.headers.get("User-Agent")

    return ip_address, user_agent
