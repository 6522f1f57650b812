"""
Permission Manager — Role-based authorization for the platform.

Every gated action and every gated area of the interface is decided here.
The manager owns a role → RoleProfile table and answers membership
questions against it:

- has_permission: may this role perform this action?
- can_manage_role: may this role administer users holding that role?
- visible_sections / can_access_section: which UI areas may it see?

Unknown roles, permissions and sections always resolve to a negative or
empty answer. Queries never raise; only require_permission does, for
callers that want an exception instead of a boolean.

The table is replaced wholesale on update (copy-on-write followed by a
single reference swap), so readers never observe a half-applied profile
and take no lock.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field

from accademia_tpl.access.schema import (
    CRITICAL_PERMISSIONS,
    DEFAULT_PERMISSIONS,
    DEFAULT_ROLE_PROFILES,
    Permission,
    RoleName,
    RoleProfile,
)

logger = logging.getLogger(__name__)


class PermissionDeniedError(Exception):
    """Raised by require_permission when a role lacks a permission."""

    def __init__(self, role: str, permission_id: str, reason: str) -> None:
        super().__init__(f"Access denied: {permission_id} required ({reason})")
        self.role = role
        self.permission_id = permission_id
        self.reason = reason


class PermissionDecision(str, enum.Enum):
    """Result of a permission check."""

    GRANTED = "granted"
    DENIED = "denied"
    UNKNOWN_ROLE = "unknown_role"


@dataclass
class PermissionCheckResult:
    """Result of checking a permission against a role profile."""

    decision: PermissionDecision
    role: str
    permission_id: str
    reason: str

    @property
    def is_allowed(self) -> bool:
        return self.decision == PermissionDecision.GRANTED


@dataclass
class IntegrityReport:
    """Outcome of PermissionManager.verify_integrity."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _role_key(role: str | RoleName) -> str:
    return role.value if isinstance(role, RoleName) else role


class PermissionManager:
    """
    Central authorization service.

    Holds the role → profile table built from the default configuration
    (or from the tables passed in) and the permission catalogue used by
    integrity checks.
    """

    def __init__(
        self,
        profiles: dict[str, RoleProfile] | None = None,
        catalogue: dict[str, Permission] | None = None,
    ) -> None:
        """
        Initialize the manager.

        Args:
            profiles: Role profiles keyed by role identifier. Defaults to
                DEFAULT_ROLE_PROFILES.
            catalogue: Permission catalogue keyed by permission id. Defaults
                to DEFAULT_PERMISSIONS.
        """
        source = DEFAULT_ROLE_PROFILES if profiles is None else profiles
        self._profiles: dict[str, RoleProfile] = {
            _role_key(role): profile for role, profile in source.items()
        }
        self.catalogue: dict[str, Permission] = dict(
            DEFAULT_PERMISSIONS if catalogue is None else catalogue
        )
        self._write_lock = threading.Lock()

    # ── Queries ─────────────────────────────────────────────────

    def get_profile(self, role: str | RoleName) -> RoleProfile | None:
        """Retrieve a role's profile, or None if the role is unknown."""
        return self._profiles.get(_role_key(role))

    def has_permission(self, role: str | RoleName, permission_id: str) -> bool:
        profile = self.get_profile(role)
        return profile is not None and permission_id in profile.permissions

    def can_manage_role(self, manager_role: str | RoleName, target_role: str | RoleName) -> bool:
        profile = self.get_profile(manager_role)
        return profile is not None and _role_key(target_role) in profile.manageable_roles

    def visible_sections(self, role: str | RoleName) -> frozenset[str]:
        profile = self.get_profile(role)
        return profile.sections if profile is not None else frozenset()

    def can_access_section(self, role: str | RoleName, section: str) -> bool:
        return section in self.visible_sections(role)

    def check_permission(self, role: str | RoleName, permission_id: str) -> PermissionCheckResult:
        """
        Check a permission and explain the outcome.

        Args:
            role: Role identifier of the acting user.
            permission_id: Permission being exercised (e.g., 'users.delete').

        Returns:
            PermissionCheckResult with decision and reasoning.
        """
        key = _role_key(role)
        profile = self._profiles.get(key)
        if profile is None:
            return PermissionCheckResult(
                decision=PermissionDecision.UNKNOWN_ROLE,
                role=key,
                permission_id=permission_id,
                reason=f"Unknown role: {key}",
            )

        if permission_id in profile.permissions:
            return PermissionCheckResult(
                decision=PermissionDecision.GRANTED,
                role=key,
                permission_id=permission_id,
                reason=f"Role '{key}' holds {permission_id}",
            )

        return PermissionCheckResult(
            decision=PermissionDecision.DENIED,
            role=key,
            permission_id=permission_id,
            reason=f"Role '{key}' does not hold {permission_id}",
        )

    def require_permission(self, role: str | RoleName, permission_id: str) -> None:
        """Raise PermissionDeniedError unless the role holds the permission."""
        result = self.check_permission(role, permission_id)
        if not result.is_allowed:
            logger.warning("Permission denied: role=%s permission=%s", result.role, permission_id)
            raise PermissionDeniedError(result.role, permission_id, result.reason)

    def role_level(self, role: str | RoleName) -> int | None:
        profile = self.get_profile(role)
        return profile.level if profile is not None else None

    def is_role_higher(self, role: str | RoleName, other: str | RoleName) -> bool:
        """True if `role` is strictly more privileged than `other`."""
        level = self.role_level(role)
        if level is None:
            return False
        other_level = self.role_level(other)
        return other_level is None or level < other_level

    def list_profiles(self) -> dict[str, RoleProfile]:
        """Return all active profiles, most privileged first."""
        return dict(sorted(self._profiles.items(), key=lambda item: item[1].level))

    def list_permissions(self) -> list[Permission]:
        """Return the catalogue ordered by category, then id."""
        return sorted(self.catalogue.values(), key=lambda p: (p.category.value, p.id))

    # ── Mutation ────────────────────────────────────────────────

    def update_role_profile(self, role: str | RoleName, profile: RoleProfile) -> None:
        """
        Replace a role's entire profile.

        No consistency validation is performed; run verify_integrity to
        inspect the resulting table.
        """
        key = _role_key(role)
        with self._write_lock:
            profiles = dict(self._profiles)
            profiles[key] = profile
            self._profiles = profiles
        logger.info("Role profile updated: %s", key)

    def set_permission(self, role: str | RoleName, permission_id: str, granted: bool) -> bool:
        """
        Grant or revoke a single permission for a role.

        Returns False, changing nothing, if the role has no profile.
        """
        return self._edit_profile(role, "permissions", permission_id, granted)

    def set_section_visibility(self, role: str | RoleName, section: str, visible: bool) -> bool:
        """
        Show or hide a single UI section for a role.

        Returns False, changing nothing, if the role has no profile.
        """
        return self._edit_profile(role, "sections", section, visible)

    def _edit_profile(self, role: str | RoleName, field_name: str, item: str, present: bool) -> bool:
        key = _role_key(role)
        with self._write_lock:
            profile = self._profiles.get(key)
            if profile is None:
                return False
            current: frozenset[str] = getattr(profile, field_name)
            updated = current | {item} if present else current - {item}
            profiles = dict(self._profiles)
            profiles[key] = profile.model_copy(update={field_name: updated})
            self._profiles = profiles
        logger.info("Role profile %s updated: %s %s=%s", field_name, key, item, present)
        return True

    # ── Integrity ───────────────────────────────────────────────

    def verify_integrity(self) -> IntegrityReport:
        """
        Inspect the current table for configuration mistakes.

        Errors make the table unusable as configured (missing superadmin,
        permissions absent from the catalogue). Warnings flag breaches of
        convention: dangling manageable roles, missing critical permissions,
        and lower-privilege roles holding permissions that a more privileged
        role lacks.
        """
        report = IntegrityReport()
        profiles = self._profiles

        if RoleName.SUPERADMIN.value not in profiles:
            report.errors.append("Critical: superadmin role not found")

        for key, profile in profiles.items():
            unknown = sorted(profile.permissions.difference(self.catalogue))
            if unknown:
                report.errors.append(
                    f"Role '{key}' grants unknown permissions: {', '.join(unknown)}"
                )
            dangling = sorted(profile.manageable_roles.difference(profiles))
            if dangling:
                report.warnings.append(
                    f"Role '{key}' manages undefined roles: {', '.join(dangling)}"
                )

        missing = [p for p in CRITICAL_PERMISSIONS if p not in self.catalogue]
        if missing:
            report.warnings.append(f"Missing permissions: {', '.join(missing)}")

        ordered = sorted(profiles.items(), key=lambda item: item[1].level)
        for i, (higher_key, higher) in enumerate(ordered):
            for lower_key, lower in ordered[i + 1:]:
                if lower.level == higher.level:
                    continue
                extra = sorted(lower.permissions - higher.permissions)
                if extra:
                    report.warnings.append(
                        f"Role '{lower_key}' holds permissions missing from "
                        f"more privileged role '{higher_key}': {', '.join(extra)}"
                    )

        if not report.is_valid:
            logger.error("Permission table integrity check failed: %s", report.errors)
        return report


# Global permission manager instance (initialized with the default table)
permission_manager = PermissionManager()
