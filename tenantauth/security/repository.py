from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from tenantauth.authz.context import DataScope
from tenantauth.authz.errors import RoleAlreadyAssignedError
from tenantauth.authz.store import (
    AssignmentRecord,
    MenuRecord,
    RoleRecord,
    UserSnapshot,
    utcnow,
)
from tenantauth.models.security import Menu, Role, User, UserRole, role_menus, role_permissions

logger = logging.getLogger(__name__)


class SqlAlchemyAuthzStore:
    """`AuthzStore` backed by a SQLAlchemy session (one per request)."""

    def __init__(self, db: Session) -> None:
        self._db = db

    # ---- Reads -----------------------------------------------------------------------

    def get_user_with_assignments(self, user_id: int) -> UserSnapshot | None:
        user = self._db.execute(
            select(User)
            .where(User.id == user_id)
            .options(
                selectinload(User.tutor),
                selectinload(User.assignments).selectinload(UserRole.role).selectinload(Role.permissions),
                selectinload(User.assignments).selectinload(UserRole.role).selectinload(Role.menus),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if user is None:
            return None

        return UserSnapshot(
            user_id=user.id,
            status=user.status,
            organization_id=user.organization_id,
            tutor_id=user.tutor.id if user.tutor is not None else None,
            assignments=tuple(_to_assignment(a) for a in user.assignments),
        )

    def get_organization_id_for_user(self, user_id: int) -> int | None:
        return self._db.execute(select(User.organization_id).where(User.id == user_id)).scalar_one_or_none()

    def user_exists(self, user_id: int) -> bool:
        return self._db.execute(select(User.id).where(User.id == user_id)).first() is not None

    def get_role(self, role_id: int) -> RoleRecord | None:
        role = self._db.get(Role, role_id)
        return _to_role(role) if role is not None else None

    def list_roles(self, scopes: Iterable[DataScope] | None = None) -> list[RoleRecord]:
        stmt = select(Role).order_by(Role.name)
        if scopes is not None:
            stmt = stmt.where(Role.data_scope.in_(list(scopes)))
        return [_to_role(r) for r in self._db.scalars(stmt).all()]

    def get_menu_catalogue(self, codes: Iterable[str] | None = None) -> list[MenuRecord]:
        stmt = select(Menu).order_by(Menu.sort_order, Menu.id)
        if codes is not None:
            stmt = stmt.where(Menu.code.in_(list(codes)))
        return [_to_menu(m) for m in self._db.scalars(stmt).all()]

    def assignment_exists(self, user_id: int, role_id: int) -> bool:
        assignment = self._find_assignment(user_id, role_id)
        return assignment is not None and _is_active(assignment)

    def get_assigned_user_ids(self, role_id: int) -> list[int]:
        stmt = select(UserRole.user_id).where(UserRole.role_id == role_id).order_by(UserRole.user_id)
        return list(self._db.scalars(stmt).all())

    # ---- Writes ----------------------------------------------------------------------

    def create_assignment(self, user_id: int, role_id: int, assigned_by: int) -> None:
        """
        Insert the assignment, or renew an expired one.

        (user_id, role_id) is unique, so an expired row is refreshed in place
        rather than duplicated. An active row, or a row inserted concurrently
        by another session, raises RoleAlreadyAssignedError.
        """

        existing = self._find_assignment(user_id, role_id)
        if existing is not None and _is_active(existing):
            raise RoleAlreadyAssignedError()

        if existing is None:
            self._db.add(UserRole(user_id=user_id, role_id=role_id, assigned_by=assigned_by, assigned_at=utcnow()))
        else:
            logger.debug("Renewing expired assignment user=%s role=%s", user_id, role_id)
            existing.assigned_at = utcnow()
            existing.assigned_by = assigned_by
            existing.expires_at = None

        try:
            self._db.flush()
        except IntegrityError as exc:
            self._db.rollback()
            logger.info("Concurrent assignment detected user=%s role=%s", user_id, role_id)
            raise RoleAlreadyAssignedError() from exc

    def delete_assignment(self, user_id: int, role_id: int) -> bool:
        result = self._db.execute(
            delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        return result.rowcount > 0

    def replace_role_permissions(self, role_id: int, permission_ids: Iterable[int]) -> None:
        ids = sorted(set(permission_ids))
        self._db.execute(delete(role_permissions).where(role_permissions.c.role_id == role_id))
        if ids:
            self._db.execute(insert(role_permissions), [{"role_id": role_id, "permission_id": pid} for pid in ids])
        self._db.expire_all()

    def replace_role_menus(self, role_id: int, menu_ids: Iterable[int]) -> None:
        ids = sorted(set(menu_ids))
        self._db.execute(delete(role_menus).where(role_menus.c.role_id == role_id))
        if ids:
            self._db.execute(insert(role_menus), [{"role_id": role_id, "menu_id": mid} for mid in ids])
        self._db.expire_all()

    def commit(self) -> None:
        self._db.commit()

    def rollback(self) -> None:
        self._db.rollback()

    def _find_assignment(self, user_id: int, role_id: int) -> UserRole | None:
        return self._db.execute(
            select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        ).scalar_one_or_none()


def _to_role(role: Role) -> RoleRecord:
    return RoleRecord(
        id=role.id,
        name=role.name,
        data_scope=role.data_scope,
        display_name=role.display_name,
        description=role.description,
        is_system=role.is_system,
    )


def _to_assignment(assignment: UserRole) -> AssignmentRecord:
    role = assignment.role
    return AssignmentRecord(
        role=_to_role(role),
        permission_codes=frozenset(p.code for p in role.permissions),
        menu_codes=frozenset(m.code for m in role.menus),
        assigned_at=assignment.assigned_at,
        expires_at=assignment.expires_at,
        assignment_id=assignment.id,
        assigned_by=assignment.assigned_by,
    )


def _is_active(assignment: UserRole) -> bool:
    return assignment.expires_at is None or assignment.expires_at > utcnow()


def _to_menu(menu: Menu) -> MenuRecord:
    return MenuRecord(
        id=menu.id,
        code=menu.code,
        type=menu.type,
        name=menu.name,
        parent_id=menu.parent_id,
        permission_id=menu.permission_id,
        sort_order=menu.sort_order,
        is_visible=menu.is_visible,
        is_enabled=menu.is_enabled,
        icon=menu.icon,
        path=menu.path,
        component=menu.component,
    )
