"""
Authorization core: per-principal context, permission matching, data scope,
menu trees and scope-aware role assignment.

This package has no dependency on the web or ORM layers (tenantauth.db,
tenantauth.security, ...). It talks to storage only through the ``AuthzStore``
and ``CacheStore`` protocols.
"""

from .assignments import RoleAssignmentService, validate_assignment
from .cache import ContextCache, MemoryCacheStore, RedisCacheStore
from .context import DataScope, UserContext
from .data_scope import DataScopeFilter, ResourceRef
from .errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ScopeViolationError,
)
from .loader import ContextLoader
from .menus import MenuNode, MenuService, build_visible_tree
from .permissions import PermissionMode, has_all, has_any, has_permission, matches

__all__ = [
    "AuthorizationError",
    "ConflictError",
    "ContextCache",
    "ContextLoader",
    "DataScope",
    "DataScopeFilter",
    "MemoryCacheStore",
    "MenuNode",
    "MenuService",
    "NotFoundError",
    "PermissionMode",
    "PreconditionFailedError",
    "RedisCacheStore",
    "ResourceRef",
    "RoleAssignmentService",
    "ScopeViolationError",
    "UserContext",
    "build_visible_tree",
    "has_all",
    "has_any",
    "has_permission",
    "matches",
    "validate_assignment",
]
