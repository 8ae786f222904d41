"""
Tests for the decision engine and its checks.
"""
import pytest

from taskhub.core import config
from taskhub.features.permissions.engine import (
    Decision,
    any_of,
    check_board_permission,
    check_board_task_creation,
    check_feature_access,
    check_profile_access,
    check_resource_owner,
    check_space_permission,
    check_space_role,
    check_space_specific_permission,
    check_system_admin,
    check_task_access,
    check_task_edit_permission,
    check_workspace_permission,
    check_workspace_role,
    decide,
    has_direct_access,
)
from taskhub.features.permissions.errors import (
    CollaboratorFailure,
    EntityNotFound,
    InvalidSystemRole,
    MissingResourceId,
    NoWorkspaceAccess,
    PermissionDenied,
)
from taskhub.features.permissions.resolver import ResourceKind


class TestDecide:

    def test_allowed_by_matrix(self):
        decision = decide("admin", "/workspace/:id/settings", "PUT")
        assert decision.allowed
        assert decision.reason == "role_matrix"

    def test_deny_by_default(self):
        decision = decide("member", "/workspace/:id/unlisted", "GET")
        assert not decision.allowed
        assert isinstance(decision.error, PermissionDenied)
        assert (decision.error.role, decision.error.method) == ("member", "GET")

    def test_raise_for_denial(self):
        with pytest.raises(PermissionDenied):
            decide("viewer", "/workspace/:id", "DELETE").raise_for_denial()
        Decision.allow("ok").raise_for_denial()


class TestWorkspaceCheck:

    async def test_owner_without_membership_is_allowed(self, make_request):
        request = make_request("U1", method="DELETE", path="/workspace/:id", params={"workspace_id": "W1"})
        decision = await check_workspace_permission()(request)

        assert decision.allowed
        assert decision.chain.workspace.id == "W1"

    async def test_role_not_in_matrix_is_denied(self, make_request):
        request = make_request("U9", roles={"W1": "member"}, method="PUT", path="/workspace/:id",
                               params={"workspace_id": "W1"})
        decision = await check_workspace_permission()(request)

        assert not decision.allowed
        assert isinstance(decision.error, PermissionDenied)

    async def test_explicit_path_overrides_request_path(self, make_request):
        request = make_request("U9", roles={"W1": "viewer"}, method="GET", path="/somewhere/else",
                               params={"id": "W1"})

        assert (await check_workspace_permission("/workspace/:id")(request)).allowed
        assert not (await check_workspace_permission("/workspace/:id/settings")(request)).allowed

    async def test_no_membership_is_no_workspace_access(self, make_request):
        request = make_request("U9", path="/workspace/:id", params={"workspace_id": "W1"})
        decision = await check_workspace_permission()(request)

        assert isinstance(decision.error, NoWorkspaceAccess)
        assert decision.reason == "no_workspace_access"

    async def test_invalid_system_role_is_classified_separately(self, make_request):
        request = make_request("U1", system_role="root", path="/workspace/:id", params={"workspace_id": "W1"})
        decision = await check_workspace_permission()(request)

        assert isinstance(decision.error, InvalidSystemRole)

    async def test_missing_id(self, make_request):
        decision = await check_workspace_permission()(make_request("U1", path="/workspace/:id"))

        assert isinstance(decision.error, MissingResourceId)
        assert decision.error.status_code == 400

    async def test_id_from_body(self, make_request):
        request = make_request("U1", method="POST", path="/workspace/:id/invite", body={"workspaceId": "W1"})
        assert (await check_workspace_permission()(request)).allowed

    async def test_route_parameter_wins_over_body(self, make_request):
        request = make_request("U1", path="/workspace/:id", params={"workspace_id": "W1"},
                               body={"workspace_id": "missing"})
        assert (await check_workspace_permission()(request)).allowed


class TestSpaceAndBoardChecks:

    async def test_strict_space_check_consults_matrix(self, make_request):
        request = make_request("U9", roles={"W1": "viewer"}, method="POST", path="/space/:id/archive",
                               params={"space_id": "S1"})

        decision = await check_space_permission(strict=True)(request)
        assert isinstance(decision.error, PermissionDenied)

    async def test_lenient_space_check_accepts_any_role(self, make_request):
        request = make_request("U9", roles={"W1": "viewer"}, method="POST", path="/space/:id/archive",
                               params={"space_id": "S1"})

        decision = await check_space_permission(strict=False)(request)
        assert decision.allowed
        assert decision.chain.space.id == "S1"

    async def test_lenient_mode_still_requires_a_role(self, make_request):
        request = make_request("U9", method="GET", path="/board/:id", params={"board_id": "B1"})

        decision = await check_board_permission(strict=False)(request)
        assert isinstance(decision.error, NoWorkspaceAccess)

    async def test_strict_follows_config_by_default(self, make_request, monkeypatch):
        request = make_request("U9", roles={"W1": "viewer"}, method="PATCH", path="/board/:id/columns/reorder",
                               params={"board_id": "B1"})

        monkeypatch.setattr(config, "STRICT_HIERARCHY_CHECKS", True)
        assert not (await check_board_permission()(request)).allowed
        monkeypatch.setattr(config, "STRICT_HIERARCHY_CHECKS", False)
        assert (await check_board_permission()(request)).allowed

    async def test_board_with_deleted_space_is_not_found(self, make_request, store):
        store.remove(ResourceKind.SPACE, "S1")
        request = make_request("U1", path="/board/:id", params={"board_id": "B1"})

        decision = await check_board_permission()(request)
        assert isinstance(decision.error, EntityNotFound)
        assert decision.error.kind == "space"


class TestTaskChecks:

    def test_direct_access_sets(self, store):
        task = store.entities[ResourceKind.TASK]["T1"]

        assert has_direct_access(task, "U2") and has_direct_access(task, "U2", write=True)
        assert has_direct_access(task, "U4", write=True)
        assert has_direct_access(task, "U5")
        assert not has_direct_access(task, "U5", write=True)
        assert not has_direct_access(task, "U9")

    @pytest.mark.parametrize("user_id", ["U2", "U4"])
    async def test_reporter_and_assignee_edit_without_role(self, make_request, user_id):
        request = make_request(user_id, method="PUT", path="/task/:id", params={"task_id": "T1"})
        decision = await check_task_edit_permission()(request)

        assert decision.allowed
        assert decision.reason == "direct_access"
        assert decision.chain.task.id == "T1"

    async def test_watcher_reads_but_cannot_edit(self, make_request):
        read = make_request("U5", params={"task_id": "T1"})
        write = make_request("U5", method="PUT", path="/task/:id", params={"task_id": "T1"})

        assert (await check_task_access()(read)).allowed
        assert isinstance((await check_task_edit_permission()(write)).error, NoWorkspaceAccess)

    async def test_watcher_with_member_role_can_edit(self, make_request):
        request = make_request("U5", roles={"W1": "member"}, method="PUT", path="/task/:id",
                               params={"task_id": "T1"})
        decision = await check_task_edit_permission()(request)

        assert decision.allowed
        assert decision.reason == "role_matrix"

    async def test_viewer_reads_any_task_but_cannot_edit(self, make_request):
        read = make_request("U9", roles={"W1": "viewer"}, params={"task_id": "T1"})
        write = make_request("U9", roles={"W1": "viewer"}, method="PUT", path="/task/:id",
                             params={"task_id": "T1"})

        assert (await check_task_access()(read)).reason == "workspace_role"
        assert isinstance((await check_task_edit_permission()(write)).error, PermissionDenied)

    async def test_outsider_has_no_workspace_access(self, make_request):
        decision = await check_task_access()(make_request("U3", params={"task_id": "T1"}))
        assert isinstance(decision.error, NoWorkspaceAccess)

    async def test_participant_still_needs_existing_task(self, make_request):
        decision = await check_task_access()(make_request("U2", params={"task_id": "gone"}))
        assert isinstance(decision.error, EntityNotFound)

    async def test_repeated_checks_are_identical(self, make_request):
        request = make_request("U5", method="PUT", path="/task/:id", params={"task_id": "T1"})
        check = check_task_edit_permission()

        first = await check(request)
        second = await check(request)
        assert (first.allowed, first.reason) == (second.allowed, second.reason)
        assert request.params == {"task_id": "T1"}


class TestOtherChecks:

    async def test_workspace_role_hierarchy(self, make_request):
        admin = make_request("U9", roles={"W1": "admin"}, params={"workspace_id": "W1"})
        member = make_request("U9", roles={"W1": "member"}, params={"workspace_id": "W1"})

        assert (await check_workspace_role("admin")(admin)).allowed
        assert not (await check_workspace_role("admin")(member)).allowed
        assert (await check_workspace_role("member")(admin)).allowed

    async def test_resource_owner(self, make_request):
        check = check_resource_owner("user_id")

        assert (await check(make_request("U1", params={"user_id": "U1"}))).allowed
        assert (await check(make_request("U1", body={"user_id": "U1"}))).allowed
        denied = await check(make_request("U1", params={"user_id": "U2"}))
        assert denied.error.message == "Access denied - not resource owner"
        missing = await check(make_request("U1"))
        assert isinstance(missing.error, MissingResourceId)

    async def test_system_admin(self, make_request):
        check = check_system_admin()

        assert (await check(make_request("U1", system_role="super_admin"))).allowed
        assert not (await check(make_request("U1", system_role="moderator"))).allowed


class TestSpaceLocalRoles:

    async def test_space_role_passes_matrix_without_workspace_role(self, make_request):
        request = make_request(
            "U9", space_roles={"S1": "admin"}, method="PUT", path="/space/:id", params={"space_id": "S1"}
        )
        decision = await check_space_specific_permission()(request)

        assert decision.allowed
        assert decision.reason == "space_role_matrix"
        assert decision.chain.space.id == "S1"

    async def test_workspace_role_is_checked_first(self, make_request):
        request = make_request(
            "U9",
            roles={"W1": "member"},
            space_roles={"S1": "viewer"},
            method="PUT",
            path="/space/:id",
            params={"space_id": "S1"},
        )
        decision = await check_space_specific_permission()(request)

        assert decision.reason == "role_matrix"

    async def test_neither_role_passing_is_denied(self, make_request):
        request = make_request(
            "U9",
            roles={"W1": "viewer"},
            space_roles={"S1": "viewer"},
            method="DELETE",
            path="/space/:id",
            params={"space_id": "S1"},
        )
        decision = await check_space_specific_permission()(request)

        assert isinstance(decision.error, PermissionDenied)
        assert decision.error.message == "Space permission required: DELETE /space/:id"

    async def test_no_role_at_all_is_no_workspace_access(self, make_request):
        request = make_request("U9", space_roles={"S2": "admin"}, path="/space/:id", params={"space_id": "S1"})
        decision = await check_space_specific_permission()(request)

        assert isinstance(decision.error, NoWorkspaceAccess)

    async def test_lenient_mode_accepts_any_space_role(self, make_request):
        request = make_request(
            "U9", space_roles={"S1": "viewer"}, method="DELETE", path="/space/:id", params={"space_id": "S1"}
        )
        decision = await check_space_specific_permission(strict=False)(request)

        assert decision.allowed
        assert decision.reason == "space_role"

    async def test_space_role_hierarchy(self, make_request):
        space_admin = make_request("U9", space_roles={"S1": "admin"}, params={"space_id": "S1"})
        space_viewer = make_request("U9", space_roles={"S1": "viewer"}, params={"space_id": "S1"})
        workspace_admin = make_request("U9", roles={"W1": "admin"}, space_roles={"S1": "viewer"}, params={"space_id": "S1"})

        assert (await check_space_role("admin")(space_admin)).allowed
        assert (await check_space_role("member")(workspace_admin)).allowed
        denied = await check_space_role("member")(space_viewer)
        assert denied.error.message == "Space member role required"


class TestBoardTaskCreation:

    async def test_member_may_create_tasks_on_the_board(self, make_request):
        request = make_request("U9", roles={"W1": "member"}, method="POST", params={"task_id": "T1"})
        decision = await check_board_task_creation()(request)

        assert decision.allowed
        assert decision.chain.board.id == "B1"

    async def test_viewer_may_not(self, make_request):
        request = make_request("U9", roles={"W1": "viewer"}, method="POST", params={"task_id": "T1"})

        assert not (await check_board_task_creation()(request)).allowed

    async def test_participant_without_role_has_no_board_rights(self, make_request):
        decision = await check_board_task_creation()(make_request("U2", params={"task_id": "T1"}))

        assert isinstance(decision.error, NoWorkspaceAccess)

    async def test_combined_with_task_edit(self, make_request):
        check = any_of(check_task_edit_permission("/task/:id/assign"), check_board_task_creation())

        assert (await check(make_request("U2", method="POST", params={"task_id": "T1"}))).reason == "direct_access"
        member = make_request("U9", roles={"W1": "member"}, method="POST", params={"task_id": "T1"})
        assert (await check(member)).allowed
        viewer = make_request("U9", roles={"W1": "viewer"}, method="POST", params={"task_id": "T1"})
        assert (await check(viewer)).error.message == "Insufficient permissions"


class TestPlatformChecks:

    @pytest.mark.parametrize("system_role,allowed", [
        ("super_admin", True),
        ("admin", True),
        ("moderator", True),
        ("user", False),
    ])
    async def test_feature_access_by_system_role(self, make_request, system_role, allowed):
        decision = await check_feature_access("user_role_mgmt", "limited")(make_request("U1", system_role=system_role))

        assert decision.allowed is allowed

    async def test_feature_access_denial_message(self, make_request):
        decision = await check_feature_access("deployment_env")(make_request("U1", system_role="admin"))

        assert decision.error.message == "Access denied to deployment_env. Insufficient permissions."

    async def test_feature_access_validates_system_role(self, make_request):
        decision = await check_feature_access("dashboard_overview")(make_request("U1", system_role="root"))

        assert isinstance(decision.error, InvalidSystemRole)

    def test_unknown_level_is_rejected_up_front(self):
        with pytest.raises(ValueError):
            check_feature_access("dashboard_overview", "everything")

    @pytest.mark.parametrize("system_role,target,allowed", [
        ("user", "U1", True),
        ("moderator", "U1", True),
        ("moderator", "U2", False),
        ("admin", "U2", True),
        ("super_admin", "U2", True),
        ("user", "U2", False),
    ])
    async def test_profile_access(self, make_request, system_role, target, allowed):
        request = make_request("U1", system_role=system_role, params={"user_id": target})

        assert (await check_profile_access()(request)).allowed is allowed

    async def test_moderator_profile_message(self, make_request):
        request = make_request("U1", system_role="moderator", params={"user_id": "U2"})
        decision = await check_profile_access()(request)

        assert decision.error.message == "Moderators can only access their own profile"


class TestAnyOf:

    async def test_first_allowing_check_wins(self, make_request):
        check = any_of(check_system_admin(), check_resource_owner("user_id"))
        decision = await check(make_request("U1", params={"user_id": "U1"}))

        assert decision.allowed
        assert decision.reason == "resource_owner"

    async def test_all_denied_is_generic_permission_denied(self, make_request):
        check = any_of(check_system_admin(), check_resource_owner("user_id"))
        decision = await check(make_request("U1", params={"user_id": "U2"}))

        assert isinstance(decision.error, PermissionDenied)
        assert decision.error.message == "Insufficient permissions"

    async def test_not_found_in_one_branch_does_not_block_another(self, make_request):
        check = any_of(check_task_access(), check_resource_owner("user_id"))
        decision = await check(make_request("U1", params={"task_id": "gone", "user_id": "U1"}))

        assert decision.allowed

    async def test_collaborator_failure_is_not_swallowed(self, make_request, store):
        store.fail_with = CollaboratorFailure()
        check = any_of(check_task_access(), check_system_admin())

        with pytest.raises(CollaboratorFailure):
            await check(make_request("U1", system_role="admin", params={"task_id": "T1"}))
