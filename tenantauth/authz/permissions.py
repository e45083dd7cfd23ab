"""
Wildcard-aware permission evaluation.

Permission codes have the form ``resource.action``. A granted code matches a
required code when:

- both are equal, or
- the granted code is ``*.*`` (everything), or
- the granted code is ``resource.*`` and the required code is on that resource.

Everything here works on an already-loaded ``UserContext``; no I/O.
"""

from __future__ import annotations

from enum import Enum
import logging
from typing import Iterable

from .context import UserContext

logger = logging.getLogger(__name__)

WILDCARD = "*"
ALL_PERMISSIONS = "*.*"


class PermissionMode(str, Enum):
    """How a list of required permissions is combined."""

    ALL = "ALL"
    ANY = "ANY"


def split_code(code: str) -> tuple[str, str]:
    """Split ``resource.action``; a code without a dot has an empty action."""
    resource, _, action = code.partition(".")
    return resource, action


def matches(granted: str, required: str) -> bool:
    if granted == required:
        return True
    if granted == ALL_PERMISSIONS:
        return True

    granted_resource, granted_action = split_code(granted)
    if granted_action != WILDCARD or granted_resource == WILDCARD:
        return False
    required_resource, _ = split_code(required)
    return granted_resource == required_resource


def _granted_matches(granted: Iterable[str], required: str) -> bool:
    return any(matches(g, required) for g in granted)


def has_permission(context: UserContext, code: str) -> bool:
    return _granted_matches(context.permissions, code)


def has_all(context: UserContext, codes: Iterable[str] | None) -> bool:
    """Every required code must be granted. No requirement means allowed."""
    return all(has_permission(context, code) for code in codes or ())


def has_any(context: UserContext, codes: Iterable[str] | None) -> bool:
    """At least one required code must be granted. No requirement means allowed."""
    required = list(codes or ())
    if not required:
        return True
    return any(has_permission(context, code) for code in required)


def check(context: UserContext, codes: Iterable[str] | None, mode: PermissionMode = PermissionMode.ALL) -> bool:
    """Evaluate ``codes`` in the given mode and log the decision."""

    required = sorted(set(codes or ()))
    allowed = has_any(context, required) if mode is PermissionMode.ANY else has_all(context, required)
    if allowed:
        logger.debug("authz: allowed user=%s mode=%s required=%s", context.user_id, mode.value, required)
    else:
        logger.debug(
            "authz: denied user=%s mode=%s required=%s granted=%s",
            context.user_id,
            mode.value,
            required,
            sorted(context.permissions),
        )
    return allowed


# ---- Resource-oriented helpers -------------------------------------------------------


def permissions_for_resource(context: UserContext, resource: str) -> list[str]:
    """Granted codes that apply to ``resource`` (including ``*.*``), sorted."""
    return sorted(
        code for code in context.permissions if split_code(code)[0] in (resource, WILDCARD)
    )


def actions_for_resource(context: UserContext, resource: str) -> list[str]:
    """Distinct actions granted on ``resource``; ``*`` stands for every action."""
    actions = {split_code(code)[1] for code in permissions_for_resource(context, resource)}
    return sorted(actions)


def can_perform_action(context: UserContext, resource: str, action: str) -> bool:
    return has_permission(context, f"{resource}.{action}")
