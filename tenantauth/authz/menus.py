"""
Navigation tree assembly for a principal's visible menus.

The builder is a pure function of (visible menu codes, menu catalogue):

1. Keep catalogue rows whose code is granted and whose ``is_visible`` flag is
   set. ``is_enabled`` is orthogonal and does not gate inclusion.
2. Lay the rows out in a flat arena and index children by parent.
3. A row whose parent is absent from the kept set becomes a root instead of
   being dropped, so an authorized menu is never hidden by an ancestor the
   principal cannot see. Rows caught in a parent cycle are promoted the same way.
4. Siblings are ordered by ``sort_order`` with ties kept in catalogue order.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, replace
import logging
from typing import Iterable, Sequence

from .context import UserContext
from .store import AuthzStore, MenuRecord, MenuType

logger = logging.getLogger(__name__)


@dataclass
class MenuNode:
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
    children: list[MenuNode] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: MenuRecord) -> MenuNode:
        return cls(
            id=record.id,
            code=record.code,
            type=MenuType(record.type),
            name=record.name,
            parent_id=record.parent_id,
            permission_id=record.permission_id,
            sort_order=record.sort_order,
            is_visible=record.is_visible,
            is_enabled=record.is_enabled,
            icon=record.icon,
            path=record.path,
            component=record.component,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "code": self.code,
            "type": self.type.value,
            "name": self.name,
            "parent_id": self.parent_id,
            "permission_id": self.permission_id,
            "sort_order": self.sort_order,
            "is_visible": self.is_visible,
            "is_enabled": self.is_enabled,
            "icon": self.icon,
            "path": self.path,
            "component": self.component,
            "children": [child.to_dict() for child in self.children],
        }


def build_visible_tree(menu_codes: Iterable[str], catalogue: Sequence[MenuRecord]) -> list[MenuNode]:
    granted = set(menu_codes)
    visible = [r for r in catalogue if r.code in granted and r.is_visible]
    return build_tree(visible)


def build_tree(records: Sequence[MenuRecord]) -> list[MenuNode]:
    """Arrange already-selected rows into a sorted forest. Input order breaks ties."""

    arena = [MenuNode.from_record(r) for r in records]
    position: dict[int, int] = {}
    for i, node in enumerate(arena):
        position.setdefault(node.id, i)

    children: dict[int, list[int]] = defaultdict(list)
    roots: list[int] = []
    for i, node in enumerate(arena):
        parent = position.get(node.parent_id) if node.parent_id is not None else None
        if parent is None or parent == i:
            roots.append(i)
        else:
            children[parent].append(i)

    reached = _reachable(roots, children)
    if len(reached) < len(arena):
        for i in range(len(arena)):
            if i in reached:
                continue
            # Part of a parent cycle: detach from its parent and promote.
            logger.warning("menu %r is part of a parent cycle; promoting to root", arena[i].code)
            children[position[arena[i].parent_id]].remove(i)
            roots.append(i)
            reached |= _reachable([i], children)

    def by_sort_order(i: int) -> int:
        return arena[i].sort_order

    for parent, kids in children.items():
        arena[parent].children = [arena[k] for k in sorted(kids, key=by_sort_order)]
    return [arena[i] for i in sorted(roots, key=by_sort_order)]


def _reachable(starts: Iterable[int], children: dict[int, list[int]]) -> set[int]:
    seen: set[int] = set()
    stack = list(starts)
    while stack:
        i = stack.pop()
        if i in seen:
            continue
        seen.add(i)
        stack.extend(children.get(i, ()))
    return seen


# ---- Post-filters --------------------------------------------------------------------


def filter_by_type(nodes: Sequence[MenuNode], menu_type: MenuType | str) -> list[MenuNode]:
    """
    Keep only nodes of ``menu_type``.

    A matching node keeps its matching descendants. Matches below a
    non-matching ancestor are lifted into the ancestor's place.
    """

    wanted = MenuType(menu_type)
    result: list[MenuNode] = []
    for node in nodes:
        if node.type is wanted:
            result.append(replace(node, children=filter_by_type(node.children, wanted)))
        else:
            result.extend(filter_by_type(node.children, wanted))
    return result


def sidebar(nodes: Sequence[MenuNode]) -> list[MenuNode]:
    """Root-level MENU nodes only (their subtrees untouched)."""
    return [node for node in nodes if node.type is MenuType.MENU]


def find_by_code(nodes: Sequence[MenuNode], code: str) -> MenuNode | None:
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        if node.code == code:
            return node
        stack.extend(reversed(node.children))
    return None


def action_buttons(nodes: Sequence[MenuNode], parent_code: str) -> list[MenuNode]:
    parent = find_by_code(nodes, parent_code)
    if parent is None:
        return []
    return [child for child in parent.children if child.type is MenuType.BUTTON]


# ---- Service -------------------------------------------------------------------------


class MenuService:
    """Menu queries for a loaded context, backed by the menu catalogue."""

    def __init__(self, store: AuthzStore) -> None:
        self._store = store

    def get_visible_menu_tree(
        self,
        context: UserContext,
        menu_type: MenuType | str | None = None,
        sidebar_only: bool = False,
    ) -> list[MenuNode]:
        if not context.menu_codes:
            return []

        catalogue = self._store.get_menu_catalogue(context.menu_codes)
        tree = build_visible_tree(context.menu_codes, catalogue)
        if sidebar_only:
            tree = sidebar(tree)
        if menu_type is not None:
            tree = filter_by_type(tree, menu_type)
        return tree

    def get_action_buttons(self, context: UserContext, parent_code: str) -> list[MenuNode]:
        return action_buttons(self.get_visible_menu_tree(context), parent_code)


def has_menu(context: UserContext, code: str) -> bool:
    return code in context.menu_codes
