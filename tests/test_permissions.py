"""
Tests for the Permission Manager.

Validates:
- Fail-closed answers for unknown roles
- Default role matrix (superadmin, admin management rights)
- Whole-profile replacement on update
- Single permission and section toggles
- Integrity reporting
"""

from __future__ import annotations

import threading

import pytest

from accademia_tpl.access.permissions import (
    PermissionDecision,
    PermissionDeniedError,
    PermissionManager,
    permission_manager,
)
from accademia_tpl.access.schema import (
    DEFAULT_PERMISSIONS,
    DEFAULT_ROLE_PROFILES,
    RoleName,
    RoleProfile,
)


class TestUnknownRoles:
    """Unknown roles must never be granted anything."""

    def setup_method(self):
        self.manager = PermissionManager()

    @pytest.mark.parametrize("role", ["", "root", "Admin", "super_admin", "nobody"])
    def test_unknown_role_fails_closed(self, role):
        for permission_id in DEFAULT_PERMISSIONS:
            assert self.manager.has_permission(role, permission_id) is False
        for target in RoleName:
            assert self.manager.can_manage_role(role, target) is False
        assert self.manager.visible_sections(role) == frozenset()
        assert self.manager.can_access_section(role, "dashboard") is False

    def test_unknown_role_check_result(self):
        result = self.manager.check_permission("root", "users.view")
        assert result.decision == PermissionDecision.UNKNOWN_ROLE
        assert not result.is_allowed

    def test_unknown_permission_denied(self):
        assert self.manager.has_permission("superadmin", "does.not_exist") is False

    def test_unknown_section_denied(self):
        assert self.manager.can_access_section("superadmin", "billing") is False


class TestDefaultMatrix:
    """Test the default role → profile table."""

    def setup_method(self):
        self.manager = PermissionManager()

    def test_superadmin_holds_full_catalogue(self):
        for permission_id in DEFAULT_PERMISSIONS:
            assert self.manager.has_permission("superadmin", permission_id)

    def test_admin_manages_operator_not_superadmin(self):
        assert self.manager.can_manage_role("admin", "operator") is True
        assert self.manager.can_manage_role("admin", "superadmin") is False

    def test_superadmin_manages_everyone(self):
        for target in RoleName:
            assert self.manager.can_manage_role(RoleName.SUPERADMIN, target)

    def test_operator_and_below_manage_nobody(self):
        for manager_role in ("operator", "user", "guest"):
            for target in RoleName:
                assert not self.manager.can_manage_role(manager_role, target)

    def test_enum_and_string_lookups_agree(self):
        assert self.manager.has_permission(RoleName.ADMIN, "users.delete")
        assert self.manager.has_permission("admin", "users.delete")

    def test_guest_can_only_read_normatives(self):
        assert self.manager.has_permission("guest", "normatives.view")
        assert not self.manager.has_permission("guest", "normatives.edit")
        assert self.manager.visible_sections("guest") == frozenset({"dashboard", "normatives"})

    def test_superadmin_section_is_superadmin_only(self):
        for role in RoleName:
            expected = role is RoleName.SUPERADMIN
            assert self.manager.can_access_section(role, "superadmin") is expected

    def test_check_permission_granted_and_denied(self):
        granted = self.manager.check_permission("operator", "normatives.publish")
        denied = self.manager.check_permission("operator", "users.delete")
        assert granted.decision == PermissionDecision.GRANTED
        assert granted.is_allowed
        assert denied.decision == PermissionDecision.DENIED
        assert "operator" in denied.reason

    def test_require_permission_raises(self):
        self.manager.require_permission("admin", "users.delete")
        with pytest.raises(PermissionDeniedError) as exc_info:
            self.manager.require_permission("user", "users.delete")
        assert exc_info.value.role == "user"
        assert exc_info.value.permission_id == "users.delete"

    def test_role_hierarchy(self):
        assert self.manager.role_level("superadmin") == 1
        assert self.manager.role_level("guest") == 5
        assert self.manager.role_level("root") is None
        assert self.manager.is_role_higher("admin", "operator")
        assert not self.manager.is_role_higher("operator", "admin")
        assert not self.manager.is_role_higher("admin", "admin")
        assert not self.manager.is_role_higher("root", "guest")

    def test_list_profiles_most_privileged_first(self):
        assert list(self.manager.list_profiles()) == [r.value for r in RoleName]

    def test_global_permission_manager_exists(self):
        assert isinstance(permission_manager, PermissionManager)
        assert permission_manager.has_permission("superadmin", "system.permissions")


class TestPrivilegeOrdering:
    """Lower-privilege roles hold subsets of higher-privilege roles' grants."""

    def test_permission_sets_are_nested(self):
        ordered = sorted(DEFAULT_ROLE_PROFILES.values(), key=lambda p: p.level)
        for higher, lower in zip(ordered, ordered[1:]):
            assert lower.permissions <= higher.permissions, (
                f"{lower.role.value} holds {sorted(lower.permissions - higher.permissions)} "
                f"that {higher.role.value} lacks"
            )

    def test_section_sets_are_nested(self):
        ordered = sorted(DEFAULT_ROLE_PROFILES.values(), key=lambda p: p.level)
        for higher, lower in zip(ordered, ordered[1:]):
            assert lower.sections <= higher.sections

    def test_manageable_roles_are_less_privileged(self):
        for profile in DEFAULT_ROLE_PROFILES.values():
            if profile.role is RoleName.SUPERADMIN:
                continue
            for target in profile.manageable_roles:
                assert DEFAULT_ROLE_PROFILES[target].level > profile.level


class TestUpdateRoleProfile:
    """Profiles are replaced whole."""

    def setup_method(self):
        self.manager = PermissionManager()

    def test_update_replaces_entire_profile(self):
        self.manager.update_role_profile(
            "user",
            RoleProfile(role=RoleName.USER, level=4, permissions={"reports.view"}),
        )
        assert self.manager.has_permission("user", "reports.view")
        assert not self.manager.has_permission("user", "normatives.view")
        assert self.manager.visible_sections("user") == frozenset()

    def test_update_unknown_role_registers_it(self):
        profile = RoleProfile(role=RoleName.GUEST, level=6, sections={"dashboard"})
        self.manager.update_role_profile("auditor", profile)
        assert self.manager.get_profile("auditor") is profile
        assert self.manager.can_access_section("auditor", "dashboard")

    def test_update_does_not_touch_defaults_or_other_managers(self):
        other = PermissionManager()
        self.manager.update_role_profile(
            RoleName.ADMIN, RoleProfile(role=RoleName.ADMIN, level=2)
        )
        assert not self.manager.has_permission("admin", "users.view")
        assert other.has_permission("admin", "users.view")
        assert "users.view" in DEFAULT_ROLE_PROFILES["admin"].permissions

    def test_readers_see_old_or_new_profile_only(self):
        old = self.manager.get_profile("operator")
        new = RoleProfile(role=RoleName.OPERATOR, level=3, permissions={"reports.view"})
        seen: set[int] = set()
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                seen.add(id(self.manager.get_profile("operator")))

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for _ in range(200):
            self.manager.update_role_profile("operator", new)
            self.manager.update_role_profile("operator", old)
        stop.set()
        for thread in threads:
            thread.join()

        assert seen <= {id(old), id(new)}


class TestSingleEntryEdits:
    """Toggling one permission or section leaves the rest of the profile alone."""

    def setup_method(self):
        self.manager = PermissionManager()

    def test_grant_and_revoke_permission(self):
        assert self.manager.set_permission("user", "reports.view", True)
        assert self.manager.has_permission("user", "reports.view")
        assert self.manager.has_permission("user", "normatives.view")

        assert self.manager.set_permission("user", "normatives.view", False)
        assert not self.manager.has_permission("user", "normatives.view")
        assert self.manager.has_permission("user", "reports.view")

    def test_show_and_hide_section(self):
        assert self.manager.set_section_visibility(RoleName.GUEST, "education", True)
        assert self.manager.can_access_section("guest", "education")

        assert self.manager.set_section_visibility(RoleName.GUEST, "dashboard", False)
        assert self.manager.visible_sections("guest") == {"normatives", "education"}

    def test_other_fields_preserved(self):
        before = self.manager.get_profile("admin")
        self.manager.set_permission("admin", "system.backup", True)
        after = self.manager.get_profile("admin")
        assert after.level == before.level
        assert after.manageable_roles == before.manageable_roles
        assert after.sections == before.sections
        assert after.permissions == before.permissions | {"system.backup"}

    def test_unknown_role_is_noop(self):
        before = self.manager.list_profiles()
        assert not self.manager.set_permission("auditor", "reports.view", True)
        assert not self.manager.set_section_visibility("auditor", "reports", True)
        assert self.manager.get_profile("auditor") is None
        assert self.manager.list_profiles() == before

    def test_repeated_grant_is_idempotent(self):
        self.manager.set_permission("operator", "reports.view", True)
        assert self.manager.get_profile("operator") == DEFAULT_ROLE_PROFILES["operator"]

    def test_concurrent_toggles_all_survive(self):
        permission_ids = sorted(DEFAULT_PERMISSIONS)
        self.manager.update_role_profile("guest", RoleProfile(role=RoleName.GUEST, level=5))
        barrier = threading.Barrier(len(permission_ids))

        def grant(permission_id):
            barrier.wait()
            for _ in range(50):
                self.manager.set_permission("guest", permission_id, False)
                self.manager.set_permission("guest", permission_id, True)

        threads = [threading.Thread(target=grant, args=(p,)) for p in permission_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert self.manager.get_profile("guest").permissions == frozenset(permission_ids)


class TestIntegrity:
    """Test integrity reporting on the permission table."""

    def test_default_table_is_clean(self):
        report = PermissionManager().verify_integrity()
        assert report.is_valid
        assert report.errors == []
        assert report.warnings == []

    def test_missing_superadmin_is_error(self):
        profiles = {k: v for k, v in DEFAULT_ROLE_PROFILES.items() if k != "superadmin"}
        report = PermissionManager(profiles=profiles).verify_integrity()
        assert not report.is_valid
        assert any("superadmin" in error for error in report.errors)
        assert report.warnings == []

    def test_unknown_permission_is_error(self):
        manager = PermissionManager()
        manager.update_role_profile(
            "superadmin",
            RoleProfile(
                role=RoleName.SUPERADMIN,
                level=1,
                permissions=DEFAULT_ROLE_PROFILES["superadmin"].permissions | {"quizzes.take"},
                manageable_roles=DEFAULT_ROLE_PROFILES["superadmin"].manageable_roles,
                sections=DEFAULT_ROLE_PROFILES["superadmin"].sections,
            ),
        )
        report = manager.verify_integrity()
        assert not report.is_valid
        assert any("quizzes.take" in error for error in report.errors)

    def test_privilege_inversion_is_warning(self):
        manager = PermissionManager()
        manager.update_role_profile(
            "guest",
            RoleProfile(role=RoleName.GUEST, level=5, permissions={"system.backup"}),
        )
        report = manager.verify_integrity()
        assert report.is_valid
        assert any("guest" in w and "system.backup" in w for w in report.warnings)

    def test_missing_critical_permission_is_warning(self):
        catalogue = {k: v for k, v in DEFAULT_PERMISSIONS.items() if k != "users.delete"}
        profiles = {
            key: profile.model_copy(
                update={"permissions": profile.permissions - {"users.delete"}}
            )
            for key, profile in DEFAULT_ROLE_PROFILES.items()
        }
        report = PermissionManager(profiles=profiles, catalogue=catalogue).verify_integrity()
        assert report.is_valid
        assert any("users.delete" in w for w in report.warnings)
