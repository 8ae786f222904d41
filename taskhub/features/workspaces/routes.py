"""
Workspace hierarchy routes.

Each router is mounted under the matrix namespace it is checked against
(/workspace, /space, /board, /task), so the route template doubles as the
role-matrix path.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.database.engine import get_db
from taskhub.features.permissions.dependencies import (
    require_any_permission,
    require_workspace_permission,
    require_space_permission,
    require_space_specific_permission,
    require_board_permission,
    require_board_task_creation,
    require_task_access,
    require_task_edit_permission,
)
from taskhub.features.permissions.rate_limit import rate_limit_sensitive_ops
from taskhub.features.permissions.resolver import ResourceChain
from taskhub.features.users.models import User
from taskhub.features.workspaces.models import Task
from taskhub.features.workspaces.schemas import (
    WorkspaceResponse,
    WorkspaceUpdate,
    TransferOwnershipRequest,
    SpaceResponse,
    SpaceUpdate,
    BoardResponse,
    ColumnReorderRequest,
    TaskResponse,
    TaskUpdate,
    AssignTaskRequest,
)
from taskhub.utils import get_logger


log = get_logger(__name__)

workspace_router = APIRouter(tags=["workspaces"])
space_router = APIRouter(tags=["spaces"])
board_router = APIRouter(tags=["boards"])
task_router = APIRouter(tags=["tasks"])

transfer_rate_limit = rate_limit_sensitive_ops(scope="transfer-ownership")


def _task_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        board_id=task.board_id,
        reporter_id=task.reporter_id,
        assignee_ids=sorted(task.assignee_ids),
        watcher_ids=sorted(task.watcher_ids),
    )


# Workspace endpoints
@workspace_router.get("/{workspace_id}", response_model=WorkspaceResponse)
async def get_workspace(
    chain: Annotated[ResourceChain, Depends(require_workspace_permission())]
):
    return chain.workspace


@workspace_router.put("/{workspace_id}", response_model=WorkspaceResponse)
async def update_workspace(
    update: WorkspaceUpdate,
    chain: Annotated[ResourceChain, Depends(require_workspace_permission())],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Rename or re-describe a workspace (owner/admin)."""
    workspace = chain.workspace
    for key, value in update.model_dump(exclude_unset=True).items():
        setattr(workspace, key, value)
    await db.commit()
    return workspace


@workspace_router.get("/{workspace_id}/settings", response_model=WorkspaceResponse)
async def get_workspace_settings(
    chain: Annotated[ResourceChain, Depends(require_workspace_permission())]
):
    return chain.workspace


@workspace_router.post(
    "/{workspace_id}/transfer-ownership",
    response_model=WorkspaceResponse,
    dependencies=[Depends(transfer_rate_limit)],
)
async def transfer_ownership(
    transfer: TransferOwnershipRequest,
    chain: Annotated[ResourceChain, Depends(require_workspace_permission())],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Hand the workspace to another user. Owner only, rate limited."""
    new_owner = await db.get(User, transfer.new_owner_id)
    if new_owner is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    workspace = chain.workspace
    log.info("Transferring workspace %s from %s to %s", workspace.id, workspace.owner_id, new_owner.id)
    workspace.owner_id = new_owner.id
    await db.commit()
    return workspace


# Space endpoints
@space_router.get("/{space_id}", response_model=SpaceResponse)
async def get_space(
    chain: Annotated[ResourceChain, Depends(require_space_specific_permission())]
):
    return chain.space


@space_router.put("/{space_id}", response_model=SpaceResponse)
async def update_space(
    update: SpaceUpdate,
    chain: Annotated[ResourceChain, Depends(require_space_specific_permission())],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Rename a space. Space-local roles count alongside the workspace role."""
    chain.space.name = update.name
    await db.commit()
    return chain.space


@space_router.post("/{space_id}/archive", response_model=SpaceResponse)
async def archive_space(
    chain: Annotated[ResourceChain, Depends(require_space_permission())],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    chain.space.is_archived = True
    await db.commit()
    return chain.space


# Board endpoints
@board_router.get("/{board_id}", response_model=BoardResponse)
async def get_board(
    chain: Annotated[ResourceChain, Depends(require_board_permission())]
):
    return chain.board


@board_router.patch("/{board_id}/columns/reorder")
async def reorder_columns(
    reorder: ColumnReorderRequest,
    chain: Annotated[ResourceChain, Depends(require_board_permission())]
):
    # Column storage lives with the board feature; only the access gate is here
    return {"board_id": chain.board.id, "column_ids": reorder.column_ids}


# Task endpoints
@task_router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    chain: Annotated[ResourceChain, Depends(require_task_access())]
):
    return _task_response(chain.task)


@task_router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    update: TaskUpdate,
    chain: Annotated[ResourceChain, Depends(require_task_edit_permission())],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    task = chain.task
    for key, value in update.model_dump(exclude_unset=True).items():
        setattr(task, key, value)
    await db.commit()
    return _task_response(task)


@task_router.post("/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    assignment: AssignTaskRequest,
    chain: Annotated[ResourceChain, Depends(require_any_permission(
        require_task_edit_permission(),
        require_board_task_creation(),
    ))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Add an assignee to the task (task editors or anyone who may create tasks on its board)."""
    assignee = await db.get(User, assignment.user_id)
    if assignee is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    task = chain.task
    if assignee.id not in task.assignee_ids:
        task.assignees.append(assignee)
        await db.commit()
    return _task_response(task)
