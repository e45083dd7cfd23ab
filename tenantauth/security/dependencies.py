from __future__ import annotations

import logging
from typing import Iterable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from tenantauth.authz.assignments import RoleAssignmentService
from tenantauth.authz.cache import ContextCache
from tenantauth.authz.context import UserContext
from tenantauth.authz.data_scope import DataScopeFilter
from tenantauth.authz.loader import ContextLoader
from tenantauth.authz.menus import MenuService
from tenantauth.authz.permissions import PermissionMode, check
from tenantauth.db.session import attach_data_scope, get_db
from tenantauth.security.auth import extract_user_id
from tenantauth.security.config import SecurityConfig
from tenantauth.security.repository import SqlAlchemyAuthzStore
from tenantauth.settings import get_settings

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_context_cache(request: Request) -> ContextCache | None:
    return getattr(request.app.state, "context_cache", None)


def get_authz_store(db: Session = Depends(get_db)) -> SqlAlchemyAuthzStore:
    return SqlAlchemyAuthzStore(db)


def get_context_loader(
    store: SqlAlchemyAuthzStore = Depends(get_authz_store),
    cache: ContextCache | None = Depends(get_context_cache),
) -> ContextLoader:
    return ContextLoader(store, cache, timeout_seconds=get_settings().context_load_timeout_seconds)


def get_menu_service(store: SqlAlchemyAuthzStore = Depends(get_authz_store)) -> MenuService:
    return MenuService(store)


def get_role_assignment_service(
    store: SqlAlchemyAuthzStore = Depends(get_authz_store),
    loader: ContextLoader = Depends(get_context_loader),
) -> RoleAssignmentService:
    return RoleAssignmentService(store, loader)


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_db),
    loader: ContextLoader = Depends(get_context_loader),
) -> None:
    """
    Global security dependency.

    Runs after routing, so the matching YAML route rule is known. For routes
    that require authentication it loads the principal's context (cache
    first), enforces the rule's permissions, and stores the context on
    `request.state.authz`. Any failure to produce a context rejects the
    request; there is no degraded fallback context.
    """

    rule = config.match(request.url.path, request.method)
    if not rule.auth_required:
        return

    user_id = extract_user_id(request, config)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    # Authorization errors (unknown/inactive user, no active role) propagate to the app's handler.
    context = loader.load(user_id)

    if not check(context, rule.permissions, rule.mode):
        logger.warning("User %s lacks required permissions: %s", user_id, ", ".join(rule.permissions))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions to perform this action",
        )

    request.state.authz = context
    # The session was opened before the context existed; scope it now.
    attach_data_scope(db, request)


def get_current_context(request: Request) -> UserContext:
    context = getattr(request.state, "authz", None)
    if context is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return context


def get_data_scope(context: UserContext = Depends(get_current_context)) -> DataScopeFilter:
    return DataScopeFilter(context)


class RequirePermissions:
    """
    Per-route permission requirement, declared as plain data.

        @router.post("/bookings", dependencies=[Depends(RequirePermissions(["booking.create"]))])

    Combines with the YAML route rules; both must pass. An empty list means
    no permission is required.
    """

    def __init__(self, permissions: Iterable[str], mode: PermissionMode = PermissionMode.ALL) -> None:
        self.permissions = tuple(permissions)
        self.mode = mode

    def __call__(self, context: UserContext = Depends(get_current_context)) -> UserContext:
        if not check(context, self.permissions, self.mode):
            logger.warning("User %s lacks required permissions: %s", context.user_id, ", ".join(self.permissions))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions to perform this action",
            )
        return context

    def __repr__(self) -> str:
        return f"RequirePermissions({list(self.permissions)!r}, mode={self.mode.value})"
