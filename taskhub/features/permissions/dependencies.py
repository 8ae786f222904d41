"""
Access-control dependencies for route protection.

Each `require_*` factory wraps a check from `engine.py`: it builds the
AccessRequest from the incoming request, raises the classified error on
denial, and on success attaches the resolved workspace/space/board/task to
`request.state` and returns the ResourceChain.
"""
from typing import Annotated, Any, Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core import config
from taskhub.core.database.engine import get_db
from taskhub.features.permissions.engine import (
    AccessRequest,
    Check,
    any_of,
    check_board_permission,
    check_board_task_creation,
    check_feature_access,
    check_profile_access,
    check_resource_owner,
    check_space_permission,
    check_space_role,
    check_space_specific_permission,
    check_system_admin,
    check_task_access,
    check_task_edit_permission,
    check_workspace_permission,
    check_workspace_role,
)
from taskhub.features.permissions.matrix import normalize_route_path
from taskhub.features.permissions.resolver import ResourceChain, SQLAlchemyEntityStore
from taskhub.features.permissions.roles import UserRoles, get_user_roles
from taskhub.features.users.dependencies import get_current_user
from taskhub.features.users.models import User


_BODYLESS_METHODS = {"GET", "HEAD", "DELETE", "OPTIONS"}


# ============================================================================
# Request context
# ============================================================================

async def get_current_user_roles(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)]
) -> UserRoles:
    """Aggregate role set of the current user; cached once per request."""
    return await get_user_roles(db, user)


def get_entity_store(db: Annotated[AsyncSession, Depends(get_db)]) -> SQLAlchemyEntityStore:
    return SQLAlchemyEntityStore(db, timeout=config.STORE_TIMEOUT_SECONDS)


async def _read_json_body(request: Request) -> Dict[str, Any]:
    if request.method in _BODYLESS_METHODS:
        return {}
    if "application/json" not in request.headers.get("content-type", ""):
        return {}
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _route_path(request: Request) -> str:
    """
    Matrix path for the request: the concrete path it matched, relative to
    the mount point. Concrete ids match the `:param` patterns directly, so
    the result does not depend on how the route records its router prefix.
    """
    path = request.scope.get("path") or request.url.path
    root_path = request.scope.get("root_path", "")
    if root_path and path.startswith(root_path):
        path = path[len(root_path):] or "/"
    return normalize_route_path(path)


async def get_access_request(
    request: Request,
    user_roles: Annotated[UserRoles, Depends(get_current_user_roles)],
    store: Annotated[SQLAlchemyEntityStore, Depends(get_entity_store)]
) -> AccessRequest:
    return AccessRequest(
        user_roles=user_roles,
        method=request.method,
        path=_route_path(request),
        store=store,
        params=dict(request.path_params),
        body=await _read_json_body(request),
    )


def _attach(request: Request, chain: ResourceChain) -> None:
    for name, entity in chain.as_dict().items():
        if entity is not None:
            setattr(request.state, name, entity)


def _guard(check: Check):
    async def access_dependency(
        request: Request,
        access: Annotated[AccessRequest, Depends(get_access_request)]
    ) -> Optional[ResourceChain]:
        decision = await check(access)
        decision.raise_for_denial()
        if decision.chain is not None:
            _attach(request, decision.chain)
        return decision.chain

    access_dependency.check = check
    return access_dependency


# ============================================================================
# Resource-kind adapters
# ============================================================================

def require_workspace_permission(path: Optional[str] = None):
    """
    Require the role matrix to allow this request on the workspace.

    The workspace id is read from the `workspace_id` or `id` path parameter,
    or the `workspace_id`/`workspaceId` body field.

    Usage:
        @router.put("/{workspace_id}")
        async def update_workspace(
            chain: ResourceChain = Depends(require_workspace_permission())
        ):
            ...
    """
    return _guard(check_workspace_permission(path))


def require_space_permission(path: Optional[str] = None, strict: Optional[bool] = None):
    return _guard(check_space_permission(path, strict))


def require_board_permission(path: Optional[str] = None, strict: Optional[bool] = None):
    return _guard(check_board_permission(path, strict))


def require_space_specific_permission(path: Optional[str] = None, strict: Optional[bool] = None):
    """Space access through the workspace role or a space-local role."""
    return _guard(check_space_specific_permission(path, strict))


def require_space_role(min_role: str = "member"):
    return _guard(check_space_role(min_role))


def require_task_access():
    """Task visibility: assignee, reporter, watcher, or any workspace role."""
    return _guard(check_task_access())


def require_task_edit_permission(path: Optional[str] = None):
    """Task mutation: assignee, reporter, or a role the matrix allows."""
    return _guard(check_task_edit_permission(path))


def require_board_task_creation():
    """Task-creation rights on the board that holds the task."""
    return _guard(check_board_task_creation())


def require_workspace_role(min_role: str = "member"):
    return _guard(check_workspace_role(min_role))


def require_resource_owner(resource_field: str = "user_id"):
    """The authenticated user must be the one named by `resource_field`."""
    return _guard(check_resource_owner(resource_field))


def require_system_admin():
    return _guard(check_system_admin())


def require_profile_access(resource_field: str = "user_id"):
    return _guard(check_profile_access(resource_field))


def require_feature_access(feature: str, level: str = "view"):
    """
    Gate a platform feature on the caller's system role.

    Usage:
        @router.get("/")
        async def list_users(
            _: None = Depends(require_feature_access("user_role_mgmt", "limited"))
        ):
            ...
    """
    return _guard(check_feature_access(feature, level))


def require_user_management_access(level: str = "view"):
    return require_feature_access("user_role_mgmt", level)


def require_analytics_access(level: str = "view"):
    return require_feature_access("analytics_insights", level)


def require_system_health_access(level: str = "view"):
    return require_feature_access("system_health", level)


def require_integration_access(level: str = "view"):
    return require_feature_access("integration_mgmt", level)


def require_powerbi_access(level: str = "view"):
    return require_feature_access("powerbi_integration", level)


def require_security_access(level: str = "view"):
    return require_feature_access("security_compliance", level)


def require_deployment_access(level: str = "view"):
    return require_feature_access("deployment_env", level)


def require_any_permission(*requirements):
    """
    Allow when any of the given requirements allows.

    Accepts dependencies built by the `require_*` factories or bare checks.

    Usage:
        @router.get("/{user_id}/workspaces")
        async def list_user_workspaces(
            _: None = Depends(require_any_permission(
                require_resource_owner("user_id"),
                require_system_admin(),
            ))
        ):
            ...
    """
    checks = [getattr(requirement, "check", requirement) for requirement in requirements]
    return _guard(any_of(*checks))


# Common combinations
require_workspace_member = require_workspace_role("member")
require_workspace_admin = require_workspace_role("admin")
require_space_member = require_space_role("member")
require_space_admin = require_space_role("admin")
