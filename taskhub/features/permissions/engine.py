"""
Permission decision engine.

Checks are plain async functions from an AccessRequest to a Decision. They
only read: nothing on the request is mutated, so a failed attempt inside
`any_of` leaves no trace. The FastAPI adapters in `dependencies.py` turn a
Decision into "continue" or a raised error.
"""
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Optional

from taskhub.core import config
from taskhub.features.permissions.errors import (
    AccessError,
    CollaboratorFailure,
    MissingResourceId,
    NoWorkspaceAccess,
    PermissionDenied,
)
from taskhub.features.permissions.matrix import (
    ACCESS_LEVELS,
    SYSTEM_ADMIN_ROLES,
    can_access,
    check_access_level,
    has_permission,
)
from taskhub.features.permissions.resolver import EntityStore, ResourceChain, ResourceKind, resolve_chain
from taskhub.features.permissions.roles import UserRoles, resolve_workspace_role, validate_system_role
from taskhub.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Decisions
# ============================================================================

@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str
    error: Optional[AccessError] = None
    chain: Optional[ResourceChain] = None

    @classmethod
    def allow(cls, reason: str, chain: Optional[ResourceChain] = None) -> "Decision":
        return cls(allowed=True, reason=reason, chain=chain)

    @classmethod
    def deny(cls, error: AccessError) -> "Decision":
        return cls(allowed=False, reason=error.reason, error=error)

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise self.error


def decide(role: Optional[str], path: str, method: str) -> Decision:
    """Strict check: the role matrix must explicitly allow (role, path, method)."""
    if has_permission(role, path, method):
        return Decision.allow("role_matrix")
    return Decision.deny(PermissionDenied(role, path, method))


def decide_any_role(role: Optional[str], workspace_id: Optional[str] = None) -> Decision:
    """Visibility check: holding any role in the workspace is enough."""
    if role:
        return Decision.allow("workspace_role")
    return Decision.deny(NoWorkspaceAccess(workspace_id))


def has_direct_access(task: Any, user_id: str, write: bool = False) -> bool:
    """
    Whether `user_id` participates in `task`.

    Reads are open to assignees, the reporter and watchers; writes only to
    assignees and the reporter.
    """
    if user_id in task.assignee_ids or task.reporter_id == user_id:
        return True
    if write:
        return False
    return user_id in task.watcher_ids


# ============================================================================
# Check inputs
# ============================================================================

@dataclass(frozen=True)
class AccessRequest:
    """Everything a check may look at for one inbound request."""
    user_roles: UserRoles
    method: str
    path: str
    store: EntityStore
    params: Dict[str, Any] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> str:
        return self.user_roles.user_id

    def lookup(self, *names: str) -> Optional[str]:
        """First non-empty value among path params, then body fields."""
        for name in names:
            value = self.params.get(name)
            if value:
                return str(value)
        for name in names:
            value = self.body.get(name)
            if value:
                return str(value)
        return None

    def resource_id(self, kind: ResourceKind) -> str:
        # route parameter, generic id parameter, then body field
        value = (
            self.params.get(f"{kind.value}_id")
            or self.params.get("id")
            or self.body.get(f"{kind.value}_id")
            or self.body.get(f"{kind.value}Id")
        )
        if not value:
            raise MissingResourceId(kind.value)
        return str(value)


Check = Callable[[AccessRequest], Awaitable[Decision]]


def access_check(func: Callable[[AccessRequest], Awaitable[Decision]]) -> Check:
    """
    Turn classified access errors raised inside a check into a denial.

    CollaboratorFailure is re-raised: a broken store must surface as a server
    error, not as "access denied".
    """
    @wraps(func)
    async def check(request: AccessRequest) -> Decision:
        try:
            decision = await func(request)
        except CollaboratorFailure:
            raise
        except AccessError as exc:
            decision = Decision.deny(exc)

        if decision.allowed:
            log.debug(
                "Access granted: user=%s %s %s via %s",
                request.user_id, request.method, request.path, decision.reason
            )
        else:
            log.info(
                "Access denied: user=%s %s %s reason=%s",
                request.user_id, request.method, request.path, decision.reason
            )
        return decision

    return check


async def _resolve_with_role(request: AccessRequest, kind: ResourceKind) -> tuple[ResourceChain, Optional[str]]:
    validate_system_role(request.user_roles.system_role)
    chain = await resolve_chain(request.store, kind, request.resource_id(kind))
    return chain, resolve_workspace_role(request.user_roles, chain.workspace)


def _strict_enabled(strict: Optional[bool]) -> bool:
    return config.STRICT_HIERARCHY_CHECKS if strict is None else strict


# ============================================================================
# Hierarchy checks
# ============================================================================

def check_workspace_permission(path: Optional[str] = None) -> Check:
    """
    Require the role matrix to allow the request on the workspace.

    Args:
        path: matrix path to check (e.g. "/workspace/:id/settings"); defaults
            to the request's own route path
    """
    @access_check
    async def check(request: AccessRequest) -> Decision:
        chain, role = await _resolve_with_role(request, ResourceKind.WORKSPACE)
        if role is None:
            return Decision.deny(NoWorkspaceAccess(chain.workspace.id))
        decision = decide(role, path or request.path, request.method)
        return Decision.allow(decision.reason, chain) if decision.allowed else decision

    return check


def _contained_permission(kind: ResourceKind, path: Optional[str], strict: Optional[bool]) -> Check:
    @access_check
    async def check(request: AccessRequest) -> Decision:
        chain, role = await _resolve_with_role(request, kind)
        if role is None:
            return Decision.deny(NoWorkspaceAccess(chain.workspace.id))
        if _strict_enabled(strict):
            decision = decide(role, path or request.path, request.method)
        else:
            decision = decide_any_role(role, chain.workspace.id)
        return Decision.allow(decision.reason, chain) if decision.allowed else decision

    return check


def check_space_permission(path: Optional[str] = None, strict: Optional[bool] = None) -> Check:
    """
    Space access through the owning workspace role.

    With `strict` off (see STRICT_HIERARCHY_CHECKS) any workspace role is
    sufficient and the matrix is not consulted.
    """
    return _contained_permission(ResourceKind.SPACE, path, strict)


def check_board_permission(path: Optional[str] = None, strict: Optional[bool] = None) -> Check:
    """Board access through Space -> Workspace; same modes as spaces."""
    return _contained_permission(ResourceKind.BOARD, path, strict)


def check_space_specific_permission(path: Optional[str] = None, strict: Optional[bool] = None) -> Check:
    """
    Space access through the workspace role OR a space-local role.

    Either role passing the matrix for the request path is enough. With
    `strict` off, holding either role at all is enough.
    """
    @access_check
    async def check(request: AccessRequest) -> Decision:
        chain, workspace_role = await _resolve_with_role(request, ResourceKind.SPACE)
        space_role = request.user_roles.space_role_for(chain.space.id)
        if workspace_role is None and space_role is None:
            return Decision.deny(NoWorkspaceAccess(chain.workspace.id))

        if not _strict_enabled(strict):
            return Decision.allow("space_role" if workspace_role is None else "workspace_role", chain)

        target = path or request.path
        if decide(workspace_role, target, request.method).allowed:
            return Decision.allow("role_matrix", chain)
        if decide(space_role, target, request.method).allowed:
            return Decision.allow("space_role_matrix", chain)
        return Decision.deny(PermissionDenied(
            workspace_role or space_role,
            target,
            request.method,
            message=f"Space permission required: {request.method} {target}",
        ))

    return check


def check_space_role(min_role: str = "member") -> Check:
    """The higher of the workspace and space-local roles must rank `min_role`."""
    @access_check
    async def check(request: AccessRequest) -> Decision:
        chain, workspace_role = await _resolve_with_role(request, ResourceKind.SPACE)
        space_role = request.user_roles.space_role_for(chain.space.id)
        if workspace_role is None and space_role is None:
            return Decision.deny(NoWorkspaceAccess(chain.workspace.id))
        for role in (workspace_role, space_role):
            if role is not None and can_access(role, [min_role]):
                return Decision.allow("role_hierarchy", chain)
        return Decision.deny(PermissionDenied(
            workspace_role or space_role, message=f"Space {min_role} role required"
        ))

    return check


def check_task_access() -> Check:
    """Task visibility: participants first, then any workspace role."""
    @access_check
    async def check(request: AccessRequest) -> Decision:
        chain, role = await _resolve_with_role(request, ResourceKind.TASK)
        if has_direct_access(chain.task, request.user_id):
            return Decision.allow("direct_access", chain)
        decision = decide_any_role(role, chain.workspace.id)
        return Decision.allow(decision.reason, chain) if decision.allowed else decision

    return check


def check_task_edit_permission(path: Optional[str] = None) -> Check:
    """
    Task mutation: assignees and the reporter always may; everyone else
    needs the role matrix to allow the request path and method.
    """
    @access_check
    async def check(request: AccessRequest) -> Decision:
        chain, role = await _resolve_with_role(request, ResourceKind.TASK)
        if has_direct_access(chain.task, request.user_id, write=True):
            return Decision.allow("direct_access", chain)
        if role is None:
            return Decision.deny(NoWorkspaceAccess(chain.workspace.id))
        decision = decide(role, path or request.path, request.method)
        return Decision.allow(decision.reason, chain) if decision.allowed else decision

    return check


def check_board_task_creation() -> Check:
    """Task-creation rights on the board holding the task in the request."""
    @access_check
    async def check(request: AccessRequest) -> Decision:
        chain, role = await _resolve_with_role(request, ResourceKind.TASK)
        if role is None:
            return Decision.deny(NoWorkspaceAccess(chain.workspace.id))
        decision = decide(role, "/board/:id/tasks", "POST")
        return Decision.allow("board_task_creation", chain) if decision.allowed else decision

    return check


def check_workspace_role(min_role: str = "member") -> Check:
    """Role-hierarchy check: the workspace role must rank at least `min_role`."""
    @access_check
    async def check(request: AccessRequest) -> Decision:
        chain, role = await _resolve_with_role(request, ResourceKind.WORKSPACE)
        if role is None:
            return Decision.deny(NoWorkspaceAccess(chain.workspace.id))
        if not can_access(role, [min_role]):
            return Decision.deny(PermissionDenied(role, message=f"Workspace {min_role} role required"))
        return Decision.allow("role_hierarchy", chain)

    return check


# ============================================================================
# Hierarchy-independent checks
# ============================================================================

def check_resource_owner(resource_field: str = "user_id") -> Check:
    """The authenticated user must equal `resource_field` from params or body."""
    @access_check
    async def check(request: AccessRequest) -> Decision:
        owner_id = request.lookup(resource_field)
        if not owner_id:
            raise MissingResourceId("resource user")
        if owner_id != request.user_id:
            return Decision.deny(PermissionDenied(message="Access denied - not resource owner"))
        return Decision.allow("resource_owner")

    return check


def check_system_admin() -> Check:
    @access_check
    async def check(request: AccessRequest) -> Decision:
        validate_system_role(request.user_roles.system_role)
        if request.user_roles.system_role not in SYSTEM_ADMIN_ROLES:
            return Decision.deny(PermissionDenied(message="System admin permissions required"))
        return Decision.allow("system_admin")

    return check


def check_profile_access(resource_field: str = "user_id") -> Check:
    """
    A user's own profile is always reachable; other profiles need a system
    admin role. Moderators are limited to their own.
    """
    @access_check
    async def check(request: AccessRequest) -> Decision:
        validate_system_role(request.user_roles.system_role)
        target_id = request.lookup(resource_field)
        if not target_id:
            raise MissingResourceId("resource user")
        if target_id == request.user_id:
            return Decision.allow("own_profile")
        system_role = request.user_roles.system_role
        if system_role in SYSTEM_ADMIN_ROLES:
            return Decision.allow("system_admin")
        if system_role == "moderator":
            return Decision.deny(PermissionDenied(message="Moderators can only access their own profile"))
        return Decision.deny(PermissionDenied(message="Insufficient permissions for profile access"))

    return check


def check_feature_access(feature: str, level: str = "view") -> Check:
    """
    Platform feature gate over the system-role feature matrix.

    Raises:
        ValueError: at construction, for a level outside ACCESS_LEVELS
    """
    if level not in ACCESS_LEVELS:
        raise ValueError(f"Unknown access level: {level}")

    @access_check
    async def check(request: AccessRequest) -> Decision:
        validate_system_role(request.user_roles.system_role)
        if not check_access_level(request.user_roles.system_role, feature, level):
            return Decision.deny(PermissionDenied(
                request.user_roles.system_role,
                message=f"Access denied to {feature}. Insufficient permissions.",
            ))
        return Decision.allow("feature_access")

    return check


def any_of(*checks: Check) -> Check:
    """
    OR-combinator over checks. The first allowing check wins and its chain is
    kept; if every check denies, the result is a generic PermissionDenied.
    """
    async def check(request: AccessRequest) -> Decision:
        reasons: list[str] = []
        for candidate in checks:
            decision = await candidate(request)
            if decision.allowed:
                return decision
            reasons.append(decision.reason)
        log.info("Access denied: user=%s no alternative allowed (%s)", request.user_id, ", ".join(reasons))
        return Decision.deny(PermissionDenied(message="Insufficient permissions"))

    return check
