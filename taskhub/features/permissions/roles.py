"""
Role resolution for a user inside a workspace.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.features.permissions.errors import CollaboratorFailure, InvalidSystemRole
from taskhub.features.permissions.matrix import SYSTEM_ROLES
from taskhub.features.users.models import User
from taskhub.features.workspaces.models import list_space_roles, list_workspace_roles
from taskhub.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class WorkspaceRole:
    workspace_id: str
    role: str


@dataclass(frozen=True)
class SpaceRole:
    space_id: str
    role: str


@dataclass(frozen=True)
class UserRoles:
    """
    A user's aggregate role set, computed once per authenticated request.

    `system_role` is the platform axis and only gates whether the workspace
    check runs; `workspace_roles` holds the explicit membership rows and
    `space_roles` the space-local ones.
    """
    user_id: str
    system_role: Optional[str]
    workspace_roles: List[WorkspaceRole] = field(default_factory=list)
    space_roles: List[SpaceRole] = field(default_factory=list)

    def role_for(self, workspace_id: str) -> Optional[str]:
        for entry in self.workspace_roles:
            if entry.workspace_id == workspace_id:
                return entry.role
        return None

    def space_role_for(self, space_id: str) -> Optional[str]:
        for entry in self.space_roles:
            if entry.space_id == space_id:
                return entry.role
        return None


async def get_user_roles(db: AsyncSession, user: User) -> UserRoles:
    """Load the membership rows for `user` into a UserRoles snapshot."""
    try:
        rows = await list_workspace_roles(db, user.id)
        space_rows = await list_space_roles(db, user.id)
    except SQLAlchemyError as exc:
        log.exception("Failed to load workspace roles for user %s", user.id)
        raise CollaboratorFailure("Failed to load user roles") from exc

    return UserRoles(
        user_id=user.id,
        system_role=user.system_role,
        workspace_roles=[WorkspaceRole(workspace_id, role) for workspace_id, role in rows],
        space_roles=[SpaceRole(space_id, role) for space_id, role in space_rows],
    )


def validate_system_role(system_role: Optional[str]) -> None:
    if system_role not in SYSTEM_ROLES:
        log.info("Rejected unrecognized system role %r", system_role)
        raise InvalidSystemRole(system_role)


def resolve_workspace_role(user_roles: UserRoles, workspace: Any) -> Optional[str]:
    """
    Effective role of the user in `workspace`.

    1. An explicit membership row is authoritative, even for the owner.
    2. Otherwise the recorded owner gets a transient "owner" role.
    3. Otherwise None: the user has no access to this workspace.
    """
    role = user_roles.role_for(workspace.id)
    if role is not None:
        return role
    if workspace.owner_id == user_roles.user_id:
        return "owner"
    return None
