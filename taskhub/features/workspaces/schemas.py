"""
Pydantic schemas for the workspace hierarchy.
"""
from pydantic import BaseModel, Field, ConfigDict


class WorkspaceResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    owner_id: str

    model_config = ConfigDict(from_attributes=True)


class WorkspaceUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)


class TransferOwnershipRequest(BaseModel):
    new_owner_id: str = Field(..., min_length=1, max_length=26)


class SpaceResponse(BaseModel):
    id: str
    name: str
    workspace_id: str | None = None
    is_archived: bool = False

    model_config = ConfigDict(from_attributes=True)


class SpaceUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class BoardResponse(BaseModel):
    id: str
    name: str
    space_id: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ColumnReorderRequest(BaseModel):
    column_ids: list[str] = Field(default_factory=list)


class TaskResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    board_id: str | None = None
    reporter_id: str | None = None
    assignee_ids: list[str] = []
    watcher_ids: list[str] = []

    model_config = ConfigDict(from_attributes=True)


class TaskUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None


class AssignTaskRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=26)
