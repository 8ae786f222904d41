"""
Access-control error taxonomy.

Every class is an HTTPException so a dependency can simply raise it; the
`reason` code lets callers and monitoring tell an intentional denial apart
from a degraded system.
"""
from typing import Optional
from fastapi import HTTPException, status


class AccessError(HTTPException):
    """Base class for all access-control failures. Terminal for the request."""

    reason = "access_error"
    status_code_default = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.status_code_default, detail=message)
        self.message = message

    @property
    def is_denial(self) -> bool:
        return self.status_code == status.HTTP_403_FORBIDDEN

    def to_public(self, hide_existence: bool = False) -> "AccessError":
        """
        The error as it should be shown to the caller.

        With `hide_existence`, not-found and authorization failures collapse
        into one generic 404 so unauthorized callers cannot enumerate ids.
        """
        if hide_existence and isinstance(self, (EntityNotFound, PermissionDenied, NoWorkspaceAccess)):
            return EntityNotFound("Resource")
        return self

    def __str__(self) -> str:
        return self.message


class MissingResourceId(AccessError):
    reason = "missing_resource_id"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, kind: str):
        super().__init__(f"{kind.capitalize()} ID required")
        self.kind = kind


class EntityNotFound(AccessError):
    reason = "entity_not_found"
    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, kind: str):
        super().__init__(f"{kind.capitalize()} not found")
        self.kind = kind


class NoWorkspaceAccess(AccessError):
    reason = "no_workspace_access"

    def __init__(self, workspace_id: Optional[str] = None):
        super().__init__("No access to this workspace")
        self.workspace_id = workspace_id


class InvalidSystemRole(AccessError):
    reason = "invalid_system_role"

    def __init__(self, system_role: Optional[str]):
        super().__init__("Invalid system role")
        self.system_role = system_role


class PermissionDenied(AccessError):
    reason = "permission_denied"

    def __init__(
        self,
        role: Optional[str] = None,
        path: Optional[str] = None,
        method: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"Permission denied: {method} {path}" if path else "Permission denied"
        super().__init__(message)
        self.role = role
        self.path = path
        self.method = method


class RateLimited(AccessError):
    reason = "rate_limited"
    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self):
        super().__init__("Too many requests, please try again later")


class CollaboratorFailure(AccessError):
    """An entity store lookup failed or timed out. Not a denial."""

    reason = "collaborator_failure"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Server error checking permissions"):
        super().__init__(message)
