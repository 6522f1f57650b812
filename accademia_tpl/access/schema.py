"""
Access Schema — Pydantic models for permissions, roles and UI sections.

These models describe the authorization vocabulary of the platform: the
permission catalogue, the five role tiers and the areas of the interface
whose visibility is gated per role. The default tables below are the
configuration the platform starts from; the PermissionManager copies them
at construction time and never mutates them.
"""

from __future__ import annotations

import enum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field


# ════════════════════════════════════════════════════════════════
# Enumerations
# ════════════════════════════════════════════════════════════════


class PermissionCategory(str, enum.Enum):
    """Functional area a permission belongs to."""

    USERS = "users"
    NORMATIVES = "normatives"
    SYSTEM = "system"
    REPORTS = "reports"


class RoleName(str, enum.Enum):
    """Authorization tiers, from most to least privileged."""

    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    OPERATOR = "operator"
    USER = "user"
    GUEST = "guest"


# ════════════════════════════════════════════════════════════════
# Models
# ════════════════════════════════════════════════════════════════


class Permission(BaseModel):
    """An atomic capability gating a single action (e.g. 'users.delete')."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Globally unique identifier (e.g., 'normatives.publish')")
    name: str = Field(description="Human-readable name")
    description: str = ""
    category: PermissionCategory
    level: int = Field(
        ge=1, description="Lowest-privilege role level that may hold it (1=highest privilege)"
    )


class Section(BaseModel):
    """A named area of the interface whose visibility is gated per role."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    description: str = ""


class RoleProfile(BaseModel):
    """
    Everything a role is allowed to do and see.

    Profiles are immutable: changing what a role may do means building a
    new profile and handing it to PermissionManager.update_role_profile.
    """

    model_config = ConfigDict(frozen=True)

    role: RoleName
    level: int = Field(ge=1, description="Numeric level (1=highest privilege)")
    permissions: frozenset[str] = Field(default_factory=frozenset)
    manageable_roles: frozenset[str] = Field(default_factory=frozenset)
    sections: frozenset[str] = Field(default_factory=frozenset)


# ════════════════════════════════════════════════════════════════
# Default Catalogue
# ════════════════════════════════════════════════════════════════


def _permission(
    id: str, name: str, description: str, category: PermissionCategory, level: int
) -> Permission:
    return Permission(id=id, name=name, description=description, category=category, level=level)


_CATALOGUE: list[Permission] = [
    # Users
    _permission("users.view", "View users", "May list platform users", PermissionCategory.USERS, 2),
    _permission("users.create", "Create users", "May create new users", PermissionCategory.USERS, 2),
    _permission("users.edit", "Edit users", "May edit existing users", PermissionCategory.USERS, 2),
    _permission("users.delete", "Delete users", "May delete users", PermissionCategory.USERS, 2),
    _permission(
        "users.manage_roles", "Manage roles", "May change user roles", PermissionCategory.USERS, 2
    ),
    # Normatives
    _permission(
        "normatives.view", "View normatives", "May read published normatives",
        PermissionCategory.NORMATIVES, 5,
    ),
    _permission(
        "normatives.create", "Create normatives", "May draft new normatives",
        PermissionCategory.NORMATIVES, 3,
    ),
    _permission(
        "normatives.edit", "Edit normatives", "May edit existing normatives",
        PermissionCategory.NORMATIVES, 3,
    ),
    _permission(
        "normatives.delete", "Delete normatives", "May delete normatives",
        PermissionCategory.NORMATIVES, 2,
    ),
    _permission(
        "normatives.publish", "Publish normatives", "May publish normatives",
        PermissionCategory.NORMATIVES, 3,
    ),
    # System
    _permission(
        "system.settings", "System settings", "Access to system settings",
        PermissionCategory.SYSTEM, 1,
    ),
    _permission(
        "system.permissions", "Edit permissions", "May change the permission matrix",
        PermissionCategory.SYSTEM, 1,
    ),
    _permission(
        "system.logs", "System logs", "May read system logs", PermissionCategory.SYSTEM, 2
    ),
    _permission(
        "system.backup", "System backup", "May back up the system", PermissionCategory.SYSTEM, 1
    ),
    # Reports
    _permission(
        "reports.view", "View reports", "May read reports", PermissionCategory.REPORTS, 3
    ),
    _permission(
        "reports.create", "Create reports", "May create reports", PermissionCategory.REPORTS, 3
    ),
    _permission(
        "reports.export", "Export reports", "May export report data", PermissionCategory.REPORTS, 2
    ),
]

DEFAULT_PERMISSIONS: dict[str, Permission] = {p.id: p for p in _CATALOGUE}

CRITICAL_PERMISSIONS: tuple[str, ...] = (
    "users.view",
    "users.create",
    "users.edit",
    "users.delete",
)

DEFAULT_SECTIONS: dict[str, Section] = {
    s.id: s
    for s in [
        Section(id="dashboard", display_name="Dashboard", description="Main panel"),
        Section(id="normatives", display_name="Normative", description="Regulatory documents"),
        Section(id="documents", display_name="Documenti", description="Documents and templates"),
        Section(id="education", display_name="Formazione", description="Courses and quizzes"),
        Section(id="users", display_name="Utenti", description="User management"),
        Section(id="reports", display_name="Report", description="Reports"),
        Section(id="admin", display_name="Amministrazione", description="Administration panel"),
        Section(id="superadmin", display_name="Super Admin", description="Super administration"),
    ]
}

ROLE_LEVELS: dict[str, int] = {
    RoleName.SUPERADMIN.value: 1,
    RoleName.ADMIN.value: 2,
    RoleName.OPERATOR.value: 3,
    RoleName.USER.value: 4,
    RoleName.GUEST.value: 5,
}


def _granted_at(level: int) -> frozenset[str]:
    """Catalogue permissions a role of the given level holds by default."""
    return frozenset(p.id for p in _CATALOGUE if p.level >= level)


def _default_profile(role: RoleName, **fields) -> RoleProfile:
    level = ROLE_LEVELS[role.value]
    return RoleProfile(role=role, level=level, permissions=_granted_at(level), **fields)


_ALL_SECTIONS = frozenset(DEFAULT_SECTIONS)
_READER_SECTIONS = frozenset({"dashboard", "normatives", "documents", "education"})

DEFAULT_ROLE_PROFILES: dict[str, RoleProfile] = {
    profile.role.value: profile
    for profile in [
        _default_profile(
            RoleName.SUPERADMIN,
            manageable_roles=frozenset(r.value for r in RoleName),
            sections=_ALL_SECTIONS,
        ),
        _default_profile(
            RoleName.ADMIN,
            manageable_roles=frozenset({"operator", "user", "guest"}),
            sections=_ALL_SECTIONS - {"superadmin"},
        ),
        _default_profile(RoleName.OPERATOR, sections=_READER_SECTIONS | {"reports", "admin"}),
        _default_profile(RoleName.USER, sections=_READER_SECTIONS),
        _default_profile(RoleName.GUEST, sections=frozenset({"dashboard", "normatives"})),
    ]
}


# ════════════════════════════════════════════════════════════════
# Display Helpers
# ════════════════════════════════════════════════════════════════

_CATEGORY_DISPLAY_NAMES: dict[str, str] = {
    "normatives": "Gestione Normative",
    "users": "Gestione Utenti",
    "system": "Gestione Sistema",
    "reports": "Gestione Report",
}

_CATEGORY_DESCRIPTIONS: dict[str, str] = {
    "normatives": "Permessi per la gestione delle normative del trasporto pubblico locale",
    "users": "Permessi per la gestione degli utenti del sistema",
    "system": "Permessi per la configurazione e amministrazione del sistema",
    "reports": "Permessi per la visualizzazione e creazione di report",
}

_ROLE_DISPLAY_NAMES: dict[str, str] = {
    "superadmin": "Super Amministratore",
    "admin": "Amministratore",
    "operator": "Operatore",
    "user": "Utente",
    "guest": "Ospite",
}


def _key(value: str | enum.Enum) -> str:
    return value.value if isinstance(value, enum.Enum) else value


def group_permissions_by_category(
    permissions: Iterable[Permission],
) -> dict[str, list[Permission]]:
    """Group permissions by category value, preserving input order within each group."""
    groups: dict[str, list[Permission]] = {}
    for permission in permissions:
        groups.setdefault(permission.category.value, []).append(permission)
    return groups


def category_display_name(category: str | PermissionCategory) -> str:
    key = _key(category)
    return _CATEGORY_DISPLAY_NAMES.get(key, key)


def category_description(category: str | PermissionCategory) -> str:
    return _CATEGORY_DESCRIPTIONS.get(_key(category), "Permessi di sistema")


def role_display_name(role: str | RoleName) -> str:
    key = _key(role)
    return _ROLE_DISPLAY_NAMES.get(key, key)
