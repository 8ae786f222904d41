"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.database.engine import get_db
from taskhub.features.permissions.dependencies import (
    require_any_permission,
    require_profile_access,
    require_resource_owner,
    require_system_admin,
    require_user_management_access,
)
from taskhub.features.users.dependencies import get_current_user
from taskhub.features.users.models import User
from taskhub.features.users.schemas import UserPublic, UserWorkspaceRole
from taskhub.features.workspaces.models import Workspace, list_workspace_roles


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserPublic)
async def get_me(user: Annotated[User, Depends(get_current_user)]):
    """Get current authenticated user's profile."""
    return user


@router.get(
    "",
    response_model=list[UserPublic],
    dependencies=[Depends(require_user_management_access("view"))],
)
async def list_users(db: Annotated[AsyncSession, Depends(get_db)]):
    """All active users. Requires user-management access on the platform."""
    result = await db.execute(select(User).where(User.is_active.is_(True)).order_by(User.created_at, User.id))
    return result.scalars().all()


@router.get(
    "/{user_id}",
    response_model=UserPublic,
    dependencies=[Depends(require_profile_access("user_id"))],
)
async def get_user_profile(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get(
    "/{user_id}/workspaces",
    response_model=list[UserWorkspaceRole],
    dependencies=[Depends(require_any_permission(
        require_resource_owner("user_id"),
        require_system_admin(),
    ))],
)
async def list_user_workspaces(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Workspaces a user can reach, with the effective role in each.

    Owned workspaces without a membership row are reported as "owner".
    """
    roles = [
        UserWorkspaceRole(workspace_id=workspace_id, role=role)
        for workspace_id, role in await list_workspace_roles(db, user_id)
    ]
    member_of = {entry.workspace_id for entry in roles}

    result = await db.execute(select(Workspace.id).where(Workspace.owner_id == user_id))
    for workspace_id in result.scalars().all():
        if workspace_id not in member_of:
            roles.append(UserWorkspaceRole(workspace_id=workspace_id, role="owner"))
    return roles
