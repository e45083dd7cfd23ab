from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from tenantauth.authz.context import DataScope
from tenantauth.authz.store import MenuType


class UserContextOut(BaseModel):
    user_id: int
    primary_role_name: str
    role_names: list[str]
    organization_id: int | None
    tutor_id: int | None
    permissions: list[str]
    menu_codes: list[str]
    data_scope: DataScope


class MenuNodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    type: MenuType
    name: str
    parent_id: int | None
    permission_id: int | None
    sort_order: int
    is_visible: bool
    is_enabled: bool
    icon: str | None = None
    path: str | None = None
    component: str | None = None
    children: list[MenuNodeOut] = []


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    display_name: str | None
    description: str | None
    data_scope: DataScope
    is_system: bool


class PermissionCheckOut(BaseModel):
    resource: str
    actions: list[str]
    permissions: list[str]
