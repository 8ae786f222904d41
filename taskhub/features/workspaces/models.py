"""
Workspace hierarchy models.

Workspace -> Space -> Board -> Task. Every link is a single foreign key to the
containing entity. Access is driven by workspace membership, with optional
space-local roles as a secondary path for routes that opt into them.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Table, Column, DateTime, Text, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskhub.core.database.base import Base, TimestampMixin, generate_ulid


# Ordered membership set; role is one of viewer, member, admin (owner lives on
# Workspace.owner_id)
workspace_members = Table(
    "workspace_members",
    Base.metadata,
    Column("workspace_id", String(26), ForeignKey("workspaces.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role", String(50), nullable=False, default="member"),
    Column("joined_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)

# Space-local roles; grant access only where a route checks them explicitly
space_members = Table(
    "space_members",
    Base.metadata,
    Column("space_id", String(26), ForeignKey("spaces.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role", String(50), nullable=False, default="member"),
    Column("joined_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)

task_assignees = Table(
    "task_assignees",
    Base.metadata,
    Column("task_id", String(26), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

task_watchers = Table(
    "task_watchers",
    Base.metadata,
    Column("task_id", String(26), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Workspace(Base, TimestampMixin):
    """Root tenant container."""
    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Always implicitly authorized, with or without a membership row
    owner_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id"), nullable=False, index=True
    )

    spaces: Mapped[list["Space"]] = relationship(
        "Space",
        back_populates="workspace",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Workspace(id={self.id}, name={self.name!r}, owner_id={self.owner_id})>"


class Space(Base, TimestampMixin):
    """Project grouping within a workspace."""
    __tablename__ = "spaces"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_archived: Mapped[bool] = mapped_column(default=False, nullable=False)

    workspace_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True, index=True
    )

    workspace: Mapped["Workspace | None"] = relationship(
        "Workspace",
        back_populates="spaces",
        lazy="selectin"
    )
    boards: Mapped[list["Board"]] = relationship(
        "Board",
        back_populates="space",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Space(id={self.id}, name={self.name!r}, workspace_id={self.workspace_id})>"


class Board(Base, TimestampMixin):
    """Kanban/list view within a space. Inherits access through its space."""
    __tablename__ = "boards"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    space_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("spaces.id", ondelete="SET NULL"), nullable=True, index=True
    )

    space: Mapped["Space | None"] = relationship(
        "Space",
        back_populates="boards",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Board(id={self.id}, name={self.name!r}, space_id={self.space_id})>"


class Task(Base, TimestampMixin):
    """
    Unit of work within a board.

    Assignees, reporter and watchers form the direct-access allowlist that
    bypasses the role matrix for this task.
    """
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    board_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("boards.id", ondelete="SET NULL"), nullable=True, index=True
    )
    reporter_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    assignees: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        secondary=task_assignees,
        lazy="selectin"
    )
    watchers: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        secondary=task_watchers,
        lazy="selectin"
    )

    @property
    def assignee_ids(self) -> set[str]:
        return {user.id for user in self.assignees}

    @property
    def watcher_ids(self) -> set[str]:
        return {user.id for user in self.watchers}

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title={self.title!r}, board_id={self.board_id})>"


async def add_workspace_member(
    db: AsyncSession,
    workspace_id: str,
    user_id: str,
    role: str = "member"
) -> None:
    """Insert a membership row. Used by seeding and tests."""
    await db.execute(
        workspace_members.insert().values(
            workspace_id=workspace_id,
            user_id=user_id,
            role=role,
            joined_at=datetime.now()
        )
    )


async def list_workspace_roles(db: AsyncSession, user_id: str) -> list[tuple[str, str]]:
    """All (workspace_id, role) membership rows for a user, oldest first."""
    result = await db.execute(
        select(workspace_members.c.workspace_id, workspace_members.c.role)
        .where(workspace_members.c.user_id == user_id)
        .order_by(workspace_members.c.joined_at)
    )
    return [(row.workspace_id, row.role) for row in result.all()]


async def add_space_member(
    db: AsyncSession,
    space_id: str,
    user_id: str,
    role: str = "member"
) -> None:
    await db.execute(
        space_members.insert().values(
            space_id=space_id,
            user_id=user_id,
            role=role,
            joined_at=datetime.now()
        )
    )


async def list_space_roles(db: AsyncSession, user_id: str) -> list[tuple[str, str]]:
    """All (space_id, role) space-local rows for a user, oldest first."""
    result = await db.execute(
        select(space_members.c.space_id, space_members.c.role)
        .where(space_members.c.user_id == user_id)
        .order_by(space_members.c.joined_at)
    )
    return [(row.space_id, row.role) for row in result.all()]
