"""
Pydantic schemas for user-related responses.
"""
from pydantic import BaseModel


class UserPublic(BaseModel):
    """Public user information (limited fields)."""
    id: str
    name: str
    avatar_url: str | None = None

    model_config = {"from_attributes": True}


class UserWorkspaceRole(BaseModel):
    """A workspace the user can reach and the role they hold there."""
    workspace_id: str
    role: str
