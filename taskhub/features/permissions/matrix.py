"""
Path-based role matrix.

Maps logical API paths to the workspace roles allowed per HTTP method. The
tables are plain data, loaded once at import; lookups are pattern matches so a
single `/space/:id/archive` rule covers every concrete space id.
"""
import re
from typing import Dict, List, Optional


# Role hierarchy (higher number = more permissions)
ROLE_HIERARCHY: Dict[str, int] = {
    "owner": 4,
    "admin": 3,
    "member": 2,
    "viewer": 1,
    "guest": 0,
}

# System-level roles; a separate axis from workspace roles
SYSTEM_ROLES = ("user", "moderator", "admin", "super_admin")
SYSTEM_ADMIN_ROLES = ("admin", "super_admin")

PathPermissions = Dict[str, Dict[str, List[str]]]


WORKSPACE_PERMISSIONS: PathPermissions = {
    "/workspace/:id": {
        "GET": ["owner", "admin", "member", "viewer"],
        "PUT": ["owner", "admin"],
        "DELETE": ["owner"],
    },
    "/workspace/:id/settings": {
        "GET": ["owner", "admin"],
        "PUT": ["owner", "admin"],
    },
    "/workspace/:id/members": {
        "GET": ["owner", "admin", "member"],
        "POST": ["owner", "admin"],
        "PUT": ["owner", "admin"],
        "DELETE": ["owner", "admin"],
    },
    "/workspace/:id/members/:memberId": {
        "GET": ["owner", "admin"],
        "PUT": ["owner", "admin"],
        "DELETE": ["owner", "admin"],
    },
    "/workspace/:id/billing": {
        "GET": ["owner", "admin"],
        "PUT": ["owner", "admin"],
    },
    "/workspace/:id/spaces": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
    },
    "/workspace/:id/boards": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
    },
    "/workspace/:id/analytics": {
        "GET": ["owner", "admin", "member"],
    },
    "/workspace/:id/export": {
        "GET": ["owner", "admin"],
    },
    "/workspace/:id/archive": {
        "POST": ["owner", "admin"],
    },
    "/workspace/:id/restore": {
        "POST": ["owner", "admin"],
    },
    "/workspace/:id/logo": {
        "GET": ["owner", "admin", "member", "viewer"],
        "PUT": ["owner", "admin"],
        "DELETE": ["owner", "admin"],
    },
    "/workspace/:id/rules": {
        "GET": ["owner", "admin", "member", "viewer"],
        "PUT": ["owner", "admin"],
        "DELETE": ["owner"],
    },
    "/workspace/:id/invite-link": {
        "GET": ["owner", "admin"],
    },
    "/workspace/:id/invite": {
        "POST": ["owner", "admin"],
    },
    "/workspace/:id/transfer-ownership": {
        "POST": ["owner"],
    },
    "/workspace/:id/permanent": {
        "DELETE": ["owner"],
    },
}

SPACE_PERMISSIONS: PathPermissions = {
    "/space/:id": {
        "GET": ["owner", "admin", "member", "viewer"],
        "PUT": ["owner", "admin", "member"],
        "DELETE": ["owner", "admin"],
    },
    "/space/:id/settings": {
        "GET": ["owner", "admin", "member"],
        "PUT": ["owner", "admin", "member"],
    },
    "/space/:id/members": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
        "PUT": ["owner", "admin"],
        "DELETE": ["owner", "admin"],
    },
    "/space/:id/boards": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
    },
    "/space/:id/tasks": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
    },
    "/space/:id/analytics": {
        "GET": ["owner", "admin", "member"],
    },
    "/space/:id/archive": {
        "POST": ["owner", "admin"],
    },
    "/space/:id/permanent": {
        "DELETE": ["owner", "admin"],
    },
}

BOARD_PERMISSIONS: PathPermissions = {
    "/board/:id": {
        "GET": ["owner", "admin", "member", "viewer"],
        "PUT": ["owner", "admin", "member"],
        "DELETE": ["owner", "admin"],
    },
    "/board/space/:spaceId": {
        "GET": ["owner", "admin", "member", "viewer"],
    },
    "/board/:id/settings": {
        "GET": ["owner", "admin", "member"],
        "PUT": ["owner", "admin", "member"],
    },
    "/board/:id/members": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
        "PUT": ["owner", "admin"],
        "DELETE": ["owner", "admin"],
    },
    "/board/:id/columns": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
        "PUT": ["owner", "admin", "member"],
        "DELETE": ["owner", "admin"],
    },
    "/board/:id/columns/:columnId": {
        "PUT": ["owner", "admin", "member"],
        "DELETE": ["owner", "admin"],
    },
    "/board/:id/columns/reorder": {
        "PATCH": ["owner", "admin", "member"],
    },
    "/board/:id/tasks": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
    },
    "/board/:id/analytics": {
        "GET": ["owner", "admin", "member"],
    },
    "/board/:id/export": {
        "GET": ["owner", "admin", "member"],
    },
    "/board/:id/tags": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
    },
    "/board/:id/tags/:tagName": {
        "PUT": ["owner", "admin", "member"],
        "DELETE": ["owner", "admin", "member"],
    },
}

TASK_PERMISSIONS: PathPermissions = {
    "/task": {
        "POST": ["owner", "admin", "member"],
    },
    "/task/:id": {
        "GET": ["owner", "admin", "member", "viewer"],
        "PUT": ["owner", "admin", "member"],
        "DELETE": ["owner", "admin"],
    },
    "/task/:id/assign": {
        "POST": ["owner", "admin", "member"],
        "DELETE": ["owner", "admin", "member"],
    },
    "/task/:id/comments": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
        "PUT": ["owner", "admin", "member"],
        "DELETE": ["owner", "admin", "member"],
    },
    "/task/:id/attachments": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
        "DELETE": ["owner", "admin", "member"],
    },
    "/task/:id/time": {
        "GET": ["owner", "admin", "member", "viewer"],
        "POST": ["owner", "admin", "member"],
        "PUT": ["owner", "admin", "member"],
    },
    "/task/:id/move": {
        "POST": ["owner", "admin", "member"],
    },
    "/task/:id/duplicate": {
        "POST": ["owner", "admin", "member"],
    },
}

REPORT_PERMISSIONS: PathPermissions = {
    "/reports/workspace/:id": {
        "GET": ["owner", "admin", "member"],
    },
    "/reports/space/:id": {
        "GET": ["owner", "admin", "member"],
    },
    "/reports/board/:id": {
        "GET": ["owner", "admin", "member"],
    },
}

ALL_PATH_PERMISSIONS: PathPermissions = {
    **WORKSPACE_PERMISSIONS,
    **SPACE_PERMISSIONS,
    **BOARD_PERMISSIONS,
    **TASK_PERMISSIONS,
    **REPORT_PERMISSIONS,
}


_ROUTE_PARAM = re.compile(r"\{([^}:]+)(?::[^}]*)?\}")


def _compile(pattern: str) -> re.Pattern:
    parts = []
    for segment in pattern.strip("/").split("/"):
        if segment.startswith(":"):
            parts.append(r"[^/]+")
        else:
            parts.append(re.escape(segment))
    return re.compile("^/" + "/".join(parts) + "$")


def _specificity(pattern: str) -> int:
    return sum(1 for segment in pattern.strip("/").split("/") if not segment.startswith(":"))


# Most specific patterns first so literal segments beat parameters
_COMPILED = sorted(
    ((pattern, _compile(pattern)) for pattern in ALL_PATH_PERMISSIONS),
    key=lambda item: _specificity(item[0]),
    reverse=True,
)


def normalize_route_path(path: str) -> str:
    """
    Convert a framework route template into matrix form.

    >>> normalize_route_path("/space/{space_id}/archive/")
    '/space/:space_id/archive'
    """
    path = _ROUTE_PARAM.sub(lambda m: ":" + m.group(1), path)
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def match_path(path: str) -> Optional[str]:
    """Return the matrix pattern governing `path`, or None."""
    path = normalize_route_path(path)
    if path in ALL_PATH_PERMISSIONS:
        return path
    for pattern, regex in _COMPILED:
        if regex.match(path):
            return pattern
    return None


def get_path_permission(path: str, method: str) -> Optional[List[str]]:
    """Roles allowed to call `method` on `path`, or None when no rule exists."""
    pattern = match_path(path)
    if pattern is None:
        return None
    return ALL_PATH_PERMISSIONS[pattern].get(method.upper())


def has_permission(role: Optional[str], path: str, method: str) -> bool:
    """
    Check the matrix for (role, path, method).

    Deny by default: an unknown role, path or method is never allowed.
    """
    if not role:
        return False
    allowed_roles = get_path_permission(path, method)
    if not allowed_roles:
        return False
    return role in allowed_roles


def get_role_level(role: Optional[str]) -> int:
    return ROLE_HIERARCHY.get(role or "", 0)


def can_access(role: Optional[str], required_roles: Optional[List[str]]) -> bool:
    """
    Hierarchy check: exact match, or a level at least as high as the lowest
    required role. An empty requirement allows everyone.
    """
    if not required_roles:
        return True
    if role in required_roles:
        return True
    if role not in ROLE_HIERARCHY:
        return False
    required_level = min(get_role_level(r) for r in required_roles)
    return get_role_level(role) >= required_level


# ============================================================================
# System-role feature matrix
# ============================================================================

# Lowest to highest; a role holding a level also satisfies every level below it
ACCESS_LEVELS = (
    "denied",
    "view_only",
    "view",
    "limited",
    "basic_system_self",
    "self_only",
    "respond_only",
    "view_manage_datasets",
    "logs_readonly",
    "full",
)

FEATURES = (
    "dashboard_overview",
    "user_role_mgmt",
    "templates_configs",
    "analytics_insights",
    "system_health",
    "integration_mgmt",
    "notifications_comms",
    "powerbi_integration",
    "customer_support",
    "profile_settings",
    "security_compliance",
    "deployment_env",
)

# Plain "user" accounts hold no platform feature access
FEATURE_ACCESS: Dict[str, Dict[str, str]] = {
    "super_admin": {feature: "full" for feature in FEATURES},
    "admin": {
        "dashboard_overview": "full",
        "user_role_mgmt": "limited",
        "templates_configs": "full",
        "analytics_insights": "full",
        "system_health": "view",
        "integration_mgmt": "limited",
        "notifications_comms": "full",
        "powerbi_integration": "view_manage_datasets",
        "customer_support": "full",
        "profile_settings": "basic_system_self",
        "security_compliance": "logs_readonly",
        "deployment_env": "denied",
    },
    "moderator": {
        "dashboard_overview": "limited",
        "user_role_mgmt": "limited",
        "templates_configs": "view_only",
        "analytics_insights": "limited",
        "system_health": "view_only",
        "integration_mgmt": "denied",
        "notifications_comms": "limited",
        "powerbi_integration": "view_only",
        "customer_support": "respond_only",
        "profile_settings": "self_only",
        "security_compliance": "denied",
        "deployment_env": "denied",
    },
}


def get_feature_access(system_role: Optional[str], feature: str) -> str:
    """Access level `system_role` holds on `feature`; "denied" when unlisted."""
    return FEATURE_ACCESS.get(system_role or "", {}).get(feature, "denied")


def check_access_level(system_role: Optional[str], feature: str, required_level: str = "view") -> bool:
    """
    Whether `system_role` reaches `required_level` on `feature`.

    "denied" never grants, not even against a "denied" requirement.
    """
    if required_level not in ACCESS_LEVELS:
        raise ValueError(f"Unknown access level: {required_level}")
    level = get_feature_access(system_role, feature)
    if level == "denied":
        return False
    return ACCESS_LEVELS.index(level) >= ACCESS_LEVELS.index(required_level)
