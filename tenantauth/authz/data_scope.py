"""
Row-level data scoping derived from a loaded ``UserContext``.

RBAC answers "can the user DO this?"; the data scope answers "which ROWS can
the user touch?". Three nested tiers:

    GLOBAL        every tenant
    ORGANIZATION  the principal's organization (or rows created by the principal as tutor)
    USER          the principal's own rows

Each narrower tier only ever sees a subset of what the wider one sees.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .context import DataScope, UserContext


@dataclass(frozen=True)
class ResourceRef:
    """Ownership facts about one row, as far as scoping is concerned."""

    organization_id: int | None = None
    user_id: int | None = None
    created_by_tutor_id: int | None = None
    parent_id: int | None = None


class DataScopeFilter:
    """Query-filter fragments and access checks for one principal."""

    def __init__(self, context: UserContext) -> None:
        self._context = context

    @property
    def context(self) -> UserContext:
        return self._context

    @property
    def scope(self) -> DataScope:
        return self._context.data_scope

    @property
    def is_global(self) -> bool:
        return self.scope is DataScope.GLOBAL

    @property
    def is_organization_scoped(self) -> bool:
        return self.scope is DataScope.ORGANIZATION

    @property
    def is_user_scoped(self) -> bool:
        return self.scope is DataScope.USER

    # ---- Filters ---------------------------------------------------------------------

    def apply_filter(self, base: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """
        Return ``base`` augmented with the constraint for this principal's tier.

        GLOBAL adds nothing, ORGANIZATION adds ``organization_id``, USER adds
        ``user_id``. An organization-scoped principal without an organization
        gets ``organization_id=None``; callers translating this to SQL must
        treat it as "matches nothing", never as ``IS NULL``.
        """

        criteria = dict(base or {})
        if self.is_organization_scoped:
            criteria["organization_id"] = self._context.organization_id
        elif self.is_user_scoped:
            criteria["user_id"] = self._context.user_id
        return criteria

    def organization_filter(self) -> dict[str, int]:
        if self.is_global or self._context.organization_id is None:
            return {}
        return {"organization_id": self._context.organization_id}

    def user_filter(self) -> dict[str, int]:
        if self.is_global:
            return {}
        return {"user_id": self._context.user_id}

    def parent_filter(self) -> dict[str, int]:
        """Filter for parent-owned rows (bookings, children, ...)."""
        if self.is_global:
            return {}
        return {"parent_id": self._context.user_id}

    # ---- Access checks ---------------------------------------------------------------

    def can_access_organization(self, organization_id: int) -> bool:
        if self.is_global:
            return True
        if self.is_organization_scoped:
            return self._context.organization_id is not None and self._context.organization_id == organization_id
        return False

    def can_access_resource(self, resource: ResourceRef) -> bool:
        if self.is_global:
            return True
        if self.is_organization_scoped:
            # Ownership is an addition to the organization/tutor rule: it keeps
            # everything a USER-tier principal may see visible to the wider tier.
            return (
                self._same_organization(resource)
                or self._created_by_own_tutor(resource)
                or self._owns(resource)
            )
        if self.is_user_scoped:
            return self._owns(resource)
        return False

    def _same_organization(self, resource: ResourceRef) -> bool:
        org_id = self._context.organization_id
        return org_id is not None and resource.organization_id == org_id

    def _created_by_own_tutor(self, resource: ResourceRef) -> bool:
        tutor_id = self._context.tutor_id
        return tutor_id is not None and resource.created_by_tutor_id == tutor_id

    def _owns(self, resource: ResourceRef) -> bool:
        user_id = self._context.user_id
        return resource.user_id == user_id or resource.parent_id == user_id
