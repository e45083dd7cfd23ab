"""Per-principal authorization context and the scope tiers it is reduced to."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping


class DataScope(str, Enum):
    """Breadth of rows a principal may access, widest first."""

    GLOBAL = "GLOBAL"
    ORGANIZATION = "ORGANIZATION"
    USER = "USER"

    @property
    def precedence(self) -> int:
        return _PRECEDENCE[self]

    @classmethod
    def highest(cls, scopes: Iterable[DataScope | str]) -> DataScope:
        """
        Reduce several tiers to the most permissive one.

        Raises ValueError on an empty input: a principal without any role has no
        scope at all, and callers must not pick a default for it.
        """

        resolved = [cls(s) for s in scopes]
        if not resolved:
            raise ValueError("cannot resolve data scope without any role")
        return max(resolved, key=lambda s: s.precedence)


_PRECEDENCE = {
    DataScope.USER: 0,
    DataScope.ORGANIZATION: 1,
    DataScope.GLOBAL: 2,
}


@dataclass(frozen=True)
class UserContext:
    """
    Everything the request path needs to answer authorization questions.

    Built wholesale from the current database state by ``ContextLoader`` and
    never mutated afterwards. Serializable so it can live in the context cache.
    """

    user_id: int
    primary_role_name: str
    """Role of the most recent active assignment. Display only; never used for decisions."""

    role_names: tuple[str, ...]
    organization_id: int | None
    tutor_id: int | None
    permissions: frozenset[str]
    menu_codes: frozenset[str]
    data_scope: DataScope

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict (sets become sorted lists)."""
        return {
            "user_id": self.user_id,
            "primary_role_name": self.primary_role_name,
            "role_names": list(self.role_names),
            "organization_id": self.organization_id,
            "tutor_id": self.tutor_id,
            "permissions": sorted(self.permissions),
            "menu_codes": sorted(self.menu_codes),
            "data_scope": self.data_scope.value,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> UserContext:
        """
        Rebuild a context from ``to_dict`` output.

        Raises ValueError when the payload is not a well-formed context.
        """

        try:
            user_id = raw["user_id"]
            organization_id = raw.get("organization_id")
            tutor_id = raw.get("tutor_id")
            role_names = raw["role_names"]
            permissions = raw["permissions"]
            menu_codes = raw["menu_codes"]
            primary_role_name = raw["primary_role_name"]
            data_scope = DataScope(raw["data_scope"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed user context: {exc}") from exc

        if not _is_int(user_id):
            raise ValueError("malformed user context: user_id must be an integer")
        for name, value in (("organization_id", organization_id), ("tutor_id", tutor_id)):
            if value is not None and not _is_int(value):
                raise ValueError(f"malformed user context: {name} must be an integer or null")
        for name, value in (("role_names", role_names), ("permissions", permissions), ("menu_codes", menu_codes)):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValueError(f"malformed user context: {name} must be a list of strings")
        if not isinstance(primary_role_name, str) or not role_names:
            raise ValueError("malformed user context: missing roles")

        return cls(
            user_id=user_id,
            primary_role_name=primary_role_name,
            role_names=tuple(role_names),
            organization_id=organization_id,
            tutor_id=tutor_id,
            permissions=frozenset(permissions),
            menu_codes=frozenset(menu_codes),
            data_scope=data_scope,
        )


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
