from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from tenantauth.authz.context import UserContext
from tenantauth.authz.menus import MenuNode, MenuService
from tenantauth.authz.permissions import actions_for_resource, permissions_for_resource
from tenantauth.authz.store import MenuType
from tenantauth.schemas.security import MenuNodeOut, PermissionCheckOut, UserContextOut
from tenantauth.security.dependencies import RequirePermissions, get_current_context, get_menu_service

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/context", response_model=UserContextOut)
def my_context(context: UserContext = Depends(get_current_context)) -> dict[str, object]:
    return context.to_dict()


@router.get("/permissions/{resource}", response_model=PermissionCheckOut)
def my_permissions_for(resource: str, context: UserContext = Depends(get_current_context)) -> PermissionCheckOut:
    return PermissionCheckOut(
        resource=resource,
        actions=actions_for_resource(context, resource),
        permissions=permissions_for_resource(context, resource),
    )


@router.get("/menus", response_model=list[MenuNodeOut])
def my_menus(
    menu_type: MenuType | None = Query(default=None, alias="type"),
    sidebar: bool = Query(default=False),
    context: UserContext = Depends(get_current_context),
    menus: MenuService = Depends(get_menu_service),
) -> list[MenuNode]:
    return menus.get_visible_menu_tree(context, menu_type=menu_type, sidebar_only=sidebar)


@router.get(
    "/menus/{code}/buttons",
    response_model=list[MenuNodeOut],
    dependencies=[Depends(RequirePermissions(["menu.read"]))],
)
def my_action_buttons(
    code: str,
    context: UserContext = Depends(get_current_context),
    menus: MenuService = Depends(get_menu_service),
) -> list[MenuNode]:
    return menus.get_action_buttons(context, code)
