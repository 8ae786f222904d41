"""
Demo hierarchy used for local development and the HTTP tests.

Creates one workspace owned by `owner`, one space, one board, and one task
reported by `reporter`, plus a few users with distinct relationships to it.
"""
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.features.users.models import User
from taskhub.features.workspaces.models import (
    Workspace,
    Space,
    Board,
    Task,
    add_space_member,
    add_workspace_member,
)
from taskhub.utils import get_logger


log = get_logger(__name__)


@dataclass
class DemoHierarchy:
    workspace_id: str
    space_id: str
    board_id: str
    task_id: str
    users: dict[str, str]


DEMO_USERS = {
    # name: (system_role, workspace role, space-local role)
    "owner": ("user", None, None),
    "admin": ("user", "admin", None),
    "member": ("user", "member", None),
    "viewer": ("user", "viewer", None),
    "reporter": ("user", None, None),
    "assignee": ("user", None, None),
    "watcher": ("user", None, None),
    "outsider": ("user", None, None),
    "space_admin": ("user", None, "admin"),
    "moderator": ("moderator", None, None),
    "sysadmin": ("admin", None, None),
}


async def seed_demo_hierarchy(db: AsyncSession) -> DemoHierarchy:
    """Insert the demo users and hierarchy and return their ids."""
    users = {}
    for name, (system_role, _, _) in DEMO_USERS.items():
        user = User(email=f"{name}@taskhub.test", name=name.replace("_", " ").title(), system_role=system_role)
        db.add(user)
        users[name] = user
    await db.flush()

    workspace = Workspace(name="Demo Workspace", owner_id=users["owner"].id)
    db.add(workspace)
    await db.flush()

    space = Space(name="Demo Space", workspace_id=workspace.id)
    db.add(space)
    await db.flush()

    board = Board(name="Demo Board", space_id=space.id)
    db.add(board)
    await db.flush()

    task = Task(
        title="Demo Task",
        board_id=board.id,
        reporter_id=users["reporter"].id,
        assignees=[users["assignee"]],
        watchers=[users["watcher"]],
    )
    db.add(task)

    for name, (_, workspace_role, space_role) in DEMO_USERS.items():
        if workspace_role is not None:
            await add_workspace_member(db, workspace.id, users[name].id, workspace_role)
        if space_role is not None:
            await add_space_member(db, space.id, users[name].id, space_role)

    await db.commit()
    log.info("Seeded demo workspace %s", workspace.id)

    return DemoHierarchy(
        workspace_id=workspace.id,
        space_id=space.id,
        board_id=board.id,
        task_id=task.id,
        users={name: user.id for name, user in users.items()},
    )
