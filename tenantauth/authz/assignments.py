"""
Scope-aware role assignment.

Rules, in order, for an assigner granting or revoking a role:

1. USER-scoped assigners may not manage roles at all.
2. ORGANIZATION-scoped assigners may only manage ORGANIZATION-tier roles, and
   only for users of their own organization.
3. GLOBAL-scoped assigners are unrestricted.
4. A role already actively assigned cannot be granted again.

Every mutation ends by invalidating the affected users' cached contexts, also
when the write itself fails.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .context import DataScope, UserContext
from .errors import (
    AssignmentNotFoundError,
    RoleAlreadyAssignedError,
    RoleNotFoundError,
    ScopeViolationError,
    UserNotFoundError,
)
from .loader import ContextLoader
from .store import AuthzStore, RoleRecord

logger = logging.getLogger(__name__)

INSUFFICIENT_SCOPE = "INSUFFICIENT_SCOPE_TO_ASSIGN_ROLE"
CANNOT_ASSIGN_GLOBAL_ROLE = "CANNOT_ASSIGN_GLOBAL_ROLE"
DIFFERENT_ORGANIZATION = "CANNOT_ASSIGN_ROLE_DIFFERENT_ORG"


def validate_assignment(
    assigner: UserContext,
    target_role: RoleRecord,
    target_user_org_id: int | None,
) -> None:
    """Raise ScopeViolationError naming the first rule the assignment breaks."""

    assigner_scope = assigner.data_scope
    role_scope = DataScope(target_role.data_scope)

    if assigner_scope is DataScope.USER:
        raise ScopeViolationError(INSUFFICIENT_SCOPE, "USER scope cannot assign roles")

    if assigner_scope is DataScope.ORGANIZATION:
        if role_scope is DataScope.GLOBAL:
            raise ScopeViolationError(CANNOT_ASSIGN_GLOBAL_ROLE, "Cannot assign global scope role")
        if role_scope is DataScope.USER:
            raise ScopeViolationError(
                INSUFFICIENT_SCOPE,
                "ORGANIZATION scope can only assign ORGANIZATION scope roles",
            )
        if assigner.organization_id is None or target_user_org_id is None:
            raise ScopeViolationError(
                DIFFERENT_ORGANIZATION,
                "Both users must belong to an organization",
            )
        if assigner.organization_id != target_user_org_id:
            raise ScopeViolationError(
                DIFFERENT_ORGANIZATION,
                "Cannot assign role to user from different organization",
            )


def assignable_scopes(assigner: UserContext) -> tuple[DataScope, ...]:
    """Role tiers the assigner may hand out."""
    if assigner.data_scope is DataScope.GLOBAL:
        return tuple(DataScope)
    if assigner.data_scope is DataScope.ORGANIZATION:
        return (DataScope.ORGANIZATION,)
    return ()


class RoleAssignmentService:
    def __init__(self, store: AuthzStore, loader: ContextLoader) -> None:
        self._store = store
        self._loader = loader

    def _role_and_target_org(self, target_user_id: int, role_id: int) -> tuple[RoleRecord, int | None]:
        role = self._store.get_role(role_id)
        if role is None:
            raise RoleNotFoundError(role_id)
        if not self._store.user_exists(target_user_id):
            raise UserNotFoundError(target_user_id)
        return role, self._store.get_organization_id_for_user(target_user_id)

    def assign_role(self, assigner: UserContext, target_user_id: int, role_id: int) -> None:
        role, target_org_id = self._role_and_target_org(target_user_id, role_id)
        validate_assignment(assigner, role, target_org_id)

        if self._store.assignment_exists(target_user_id, role_id):
            raise RoleAlreadyAssignedError()

        try:
            self._store.create_assignment(target_user_id, role_id, assigned_by=assigner.user_id)
            self._store.commit()
        except Exception:
            self._store.rollback()
            raise
        finally:
            self._loader.invalidate(target_user_id)

        logger.info("User %s assigned role %s (%s) to user %s", assigner.user_id, role.name, role_id, target_user_id)

    def revoke_role(self, assigner: UserContext, target_user_id: int, role_id: int) -> None:
        role, target_org_id = self._role_and_target_org(target_user_id, role_id)
        validate_assignment(assigner, role, target_org_id)

        try:
            deleted = self._store.delete_assignment(target_user_id, role_id)
            if not deleted:
                raise AssignmentNotFoundError()
            self._store.commit()
        except Exception:
            self._store.rollback()
            raise
        finally:
            self._loader.invalidate(target_user_id)

        logger.info("User %s removed role %s (%s) from user %s", assigner.user_id, role.name, role_id, target_user_id)

    def assignable_roles(self, assigner: UserContext) -> list[RoleRecord]:
        scopes = assignable_scopes(assigner)
        if not scopes:
            return []
        return self._store.list_roles(scopes)

    # ---- Role grant changes ----------------------------------------------------------

    def replace_role_permissions(self, role_id: int, permission_ids: Iterable[int]) -> None:
        self._replace_grants(role_id, lambda: self._store.replace_role_permissions(role_id, permission_ids))

    def replace_role_menus(self, role_id: int, menu_ids: Iterable[int]) -> None:
        self._replace_grants(role_id, lambda: self._store.replace_role_menus(role_id, menu_ids))

    def _replace_grants(self, role_id: int, write) -> None:
        if self._store.get_role(role_id) is None:
            raise RoleNotFoundError(role_id)

        user_ids = self._store.get_assigned_user_ids(role_id)
        try:
            write()
            self._store.commit()
        except Exception:
            self._store.rollback()
            raise
        finally:
            if user_ids:
                logger.debug("Invalidating cached contexts for %d users of role %s", len(user_ids), role_id)
                self._loader.invalidate_many(user_ids)
