"""Permission definitions and verification utilities for RBAC."""

ACTIVITIES_VIEW = "activities.view"
ACTIVITIES_MANAGE = "activities.manage"

# Global roles carried in the token and the permissions they grant
ROLE_PERMISSIONS: dict[str, set[str]] = {
    "owner": {"*"},
    "admin": {"*.view", "*.manage"},
    "manager": {ACTIVITIES_VIEW, ACTIVITIES_MANAGE},
    "staff": {ACTIVITIES_VIEW, ACTIVITIES_MANAGE},
    "viewer": {"*.view"},
}


def permissions_for_roles(roles: list[str]) -> set[str]:
    """Union of the permissions granted by a list of role names."""
    permissions: set[str] = set()
    for role in roles:
        permissions |= ROLE_PERMISSIONS.get(role, set())
    return permissions


def has_permission(user_permissions: set[str], required: str) -> bool:
    """
    Check if user has the required permission using exact and wildcard matching.

    Wildcard matching rules:
    1. Exact match: "activities.view" matches "activities.view"
    2. Module wildcard: "activities.*" matches "activities.view", "activities.manage"
    3. Action wildcard: "*.view" matches "activities.view", "deals.view", etc.
    4. Total wildcard: "*" or "*.*" matches all permissions

    Args:
        user_permissions: Set of permission strings the user has.
        required: Required permission string to check.

    Returns:
        True if user has the required permission, False otherwise.

    Examples:
        >>> has_permission({"activities.view"}, "activities.view")
        True
        >>> has_permission({"activities.*"}, "activities.manage")
        True
        >>> has_permission({"*.view"}, "activities.view")
        True
        >>> has_permission({"*"}, "activities.manage")
        True
    """
    if required in user_permissions:
        return True

    if "*" in user_permissions or "*.*" in user_permissions:
        return True

    for perm in user_permissions:
        if perm.endswith(".*") and required.startswith(perm[:-2] + "."):
            return True
        if perm.startswith("*.") and required.endswith("." + perm[2:]):
            return True

    return False
