"""
Entity resolution along the containment chain.

Task -> Board -> Space -> Workspace. Resolving any resource yields the whole
chain above it so middleware can attach every entity to the request without
looking anything up twice. A missing link is always EntityNotFound, never a
denial.
"""
import asyncio
import enum
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.features.permissions.errors import CollaboratorFailure, EntityNotFound
from taskhub.features.workspaces.models import Workspace, Space, Board, Task
from taskhub.utils import get_logger


log = get_logger(__name__)


class ResourceKind(str, enum.Enum):
    WORKSPACE = "workspace"
    SPACE = "space"
    BOARD = "board"
    TASK = "task"


class EntityStore(Protocol):
    """Read-only lookup the resolver depends on."""

    async def find_by_id(self, kind: ResourceKind, entity_id: str) -> Optional[Any]:
        ...


_MODELS = {
    ResourceKind.WORKSPACE: Workspace,
    ResourceKind.SPACE: Space,
    ResourceKind.BOARD: Board,
    ResourceKind.TASK: Task,
}


class SQLAlchemyEntityStore:
    """
    EntityStore backed by the ORM models.

    Database errors and timeouts are reported as CollaboratorFailure so an
    unavailable store is never mistaken for an authorization decision.

    A timed-out lookup is cancelled mid-flight, which leaves the session in an
    unknown state. The session is invalidated before the failure is raised,
    so the request ends there and its connection is never reused.
    """

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout

    async def find_by_id(self, kind: ResourceKind, entity_id: str) -> Optional[Any]:
        kind = ResourceKind(kind)
        model = _MODELS[kind]
        try:
            lookup = self.db.get(model, entity_id)
            if self.timeout is not None:
                return await asyncio.wait_for(lookup, timeout=self.timeout)
            return await lookup
        except asyncio.TimeoutError as exc:
            log.error("Timed out looking up %s %s", kind.value, entity_id)
            await self._invalidate()
            raise CollaboratorFailure(f"Timed out loading {kind.value}") from exc
        except (SQLAlchemyError, OSError) as exc:
            log.exception("Entity store failure looking up %s %s", kind.value, entity_id)
            raise CollaboratorFailure(f"Failed to load {kind.value}") from exc

    async def _invalidate(self) -> None:
        try:
            await self.db.invalidate()
        except (SQLAlchemyError, OSError):
            log.exception("Failed to invalidate session after a timed-out lookup")


@dataclass
class ResourceChain:
    """Entities resolved for one request, from the workspace down."""
    workspace: Any
    space: Any = None
    board: Any = None
    task: Any = None

    def as_dict(self) -> dict:
        return {
            "workspace": self.workspace,
            "space": self.space,
            "board": self.board,
            "task": self.task,
        }


async def _load(store: EntityStore, kind: ResourceKind, entity_id: Optional[str]) -> Any:
    if not entity_id:
        raise EntityNotFound(kind.value)
    entity = await store.find_by_id(kind, entity_id)
    if entity is None:
        log.debug("Chain link missing: %s %s", kind.value, entity_id)
        raise EntityNotFound(kind.value)
    return entity


async def resolve_chain(store: EntityStore, kind: ResourceKind, resource_id: str) -> ResourceChain:
    """
    Load the resource and every container above it.

    Raises:
        EntityNotFound: naming the kind of the first missing link
        CollaboratorFailure: when the store itself fails
    """
    kind = ResourceKind(kind)
    task = board = space = None

    if kind is ResourceKind.TASK:
        task = await _load(store, ResourceKind.TASK, resource_id)
        resource_id, kind = task.board_id, ResourceKind.BOARD

    if kind is ResourceKind.BOARD:
        board = await _load(store, ResourceKind.BOARD, resource_id)
        resource_id, kind = board.space_id, ResourceKind.SPACE

    if kind is ResourceKind.SPACE:
        space = await _load(store, ResourceKind.SPACE, resource_id)
        resource_id = space.workspace_id

    workspace = await _load(store, ResourceKind.WORKSPACE, resource_id)
    return ResourceChain(workspace=workspace, space=space, board=board, task=task)
