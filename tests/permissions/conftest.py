"""Fixtures for the access-control unit tests.

The entity store is an in-memory fake so chain resolution, role resolution
and decisions can be exercised without a database.
"""
from types import SimpleNamespace

import pytest

from taskhub.features.permissions.engine import AccessRequest
from taskhub.features.permissions.resolver import ResourceKind
from taskhub.features.permissions.roles import SpaceRole, UserRoles, WorkspaceRole


class FakeEntityStore:
    """EntityStore keeping SimpleNamespace entities in dicts."""

    def __init__(self):
        self.entities = {kind: {} for kind in ResourceKind}
        self.lookups = []
        self.fail_with = None

    def add(self, kind: ResourceKind, **attrs):
        entity = SimpleNamespace(**attrs)
        self.entities[kind][attrs["id"]] = entity
        return entity

    def remove(self, kind: ResourceKind, entity_id: str):
        del self.entities[kind][entity_id]

    async def find_by_id(self, kind, entity_id):
        self.lookups.append((ResourceKind(kind), entity_id))
        if self.fail_with is not None:
            raise self.fail_with
        return self.entities[ResourceKind(kind)].get(entity_id)


@pytest.fixture
def store():
    """W1 (owner U1) > S1 > B1 > T1 (reporter U2, assignee U4, watcher U5)."""
    fake = FakeEntityStore()
    fake.add(ResourceKind.WORKSPACE, id="W1", owner_id="U1")
    fake.add(ResourceKind.SPACE, id="S1", workspace_id="W1")
    fake.add(ResourceKind.BOARD, id="B1", space_id="S1")
    fake.add(
        ResourceKind.TASK,
        id="T1",
        board_id="B1",
        reporter_id="U2",
        assignee_ids={"U4"},
        watcher_ids={"U5"},
    )
    return fake


@pytest.fixture
def make_request(store):
    def _make(
        user_id,
        roles=None,
        system_role="user",
        space_roles=None,
        method="GET",
        path="/task/:id",
        params=None,
        body=None,
    ):
        user_roles = UserRoles(
            user_id=user_id,
            system_role=system_role,
            workspace_roles=[WorkspaceRole(ws, role) for ws, role in (roles or {}).items()],
            space_roles=[SpaceRole(space, role) for space, role in (space_roles or {}).items()],
        )
        return AccessRequest(
            user_roles=user_roles,
            method=method,
            path=path,
            store=store,
            params=params or {},
            body=body or {},
        )
    return _make
