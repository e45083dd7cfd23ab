"""
Read/write interface the core expects from the relational store.

The records below are plain frozen dataclasses so the loader, the menu builder
and the assignment validator can be exercised on hand-built data. The
SQLAlchemy implementation lives in ``tenantauth.security.repository``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Protocol

from .context import DataScope


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BANNED = "BANNED"


class MenuType(str, Enum):
    MENU = "MENU"
    BUTTON = "BUTTON"
    TAB = "TAB"


@dataclass(frozen=True)
class RoleRecord:
    id: int
    name: str
    data_scope: DataScope
    display_name: str | None = None
    description: str | None = None
    is_system: bool = False


@dataclass(frozen=True)
class AssignmentRecord:
    """One user→role link together with the role's grants."""

    role: RoleRecord
    permission_codes: frozenset[str]
    menu_codes: frozenset[str]
    assigned_at: datetime
    expires_at: datetime | None = None
    assignment_id: int = 0
    assigned_by: int | None = None

    def is_active(self, now: datetime) -> bool:
        """Active iff there is no expiry or the expiry is still in the future."""
        if self.expires_at is None:
            return True
        return _as_naive_utc(self.expires_at) > _as_naive_utc(now)


@dataclass(frozen=True)
class UserSnapshot:
    """Result of the single read the loader performs on a cache miss."""

    user_id: int
    status: UserStatus
    organization_id: int | None
    tutor_id: int | None
    assignments: tuple[AssignmentRecord, ...]


@dataclass(frozen=True)
class MenuRecord:
    id: int
    code: str
    type: MenuType
    name: str
    parent_id: int | None = None
    permission_id: int | None = None
    sort_order: int = 0
    is_visible: bool = True
    is_enabled: bool = True
    icon: str | None = None
    path: str | None = None
    component: str | None = None


class AuthzStore(Protocol):
    """Relational store operations consumed by the core."""

    def get_user_with_assignments(self, user_id: int) -> UserSnapshot | None: ...

    def get_organization_id_for_user(self, user_id: int) -> int | None: ...

    def user_exists(self, user_id: int) -> bool: ...

    def get_role(self, role_id: int) -> RoleRecord | None: ...

    def list_roles(self, scopes: Iterable[DataScope] | None = None) -> list[RoleRecord]: ...

    def get_menu_catalogue(self, codes: Iterable[str] | None = None) -> list[MenuRecord]: ...

    def assignment_exists(self, user_id: int, role_id: int) -> bool: ...

    def create_assignment(self, user_id: int, role_id: int, assigned_by: int) -> None: ...

    def delete_assignment(self, user_id: int, role_id: int) -> bool: ...

    def get_assigned_user_ids(self, role_id: int) -> list[int]: ...

    def replace_role_permissions(self, role_id: int, permission_ids: Iterable[int]) -> None: ...

    def replace_role_menus(self, role_id: int, menu_ids: Iterable[int]) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


def utcnow() -> datetime:
    """Naive UTC "now", matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
