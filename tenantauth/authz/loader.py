"""
Context loading: role assignments reduced to one ``UserContext``.

Cache first; on a miss, one relational read followed by a pure reduction:

- permissions / menu codes: union over every active assignment's role
- data scope: the most permissive tier among active roles (GLOBAL > ORGANIZATION > USER)
- primary role: the most recently assigned active role (display only)

Concurrent misses for the same user may each rebuild and each write the cache;
the values are derived and identical, so the last write wins.
"""

from __future__ import annotations

from datetime import datetime
import logging
import time
from typing import Iterable

from .cache import ContextCache
from .context import DataScope, UserContext
from .errors import ContextLoadTimeoutError, NoActiveRoleError, UserInactiveError, UserNotFoundError
from .store import AssignmentRecord, AuthzStore, UserSnapshot, UserStatus, utcnow

logger = logging.getLogger(__name__)


class ContextLoader:
    def __init__(
        self,
        store: AuthzStore,
        cache: ContextCache | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._timeout = timeout_seconds

    def load(self, user_id: int, timeout: float | None = None) -> UserContext:
        """
        Return the context for ``user_id``.

        Raises:
            UserNotFoundError: no such user.
            UserInactiveError: the user is inactive or banned.
            NoActiveRoleError: the user holds no unexpired role.
            ContextLoadTimeoutError: the deadline passed mid-load (nothing is cached).

        The deadline is checked after the store read returns; it does not
        interrupt a read that hangs. Bound those with the database driver's
        own statement or socket timeout.
        """

        if self._cache is not None:
            cached = self._cache.get(user_id)
            if cached is not None:
                logger.debug("Context loaded from cache user=%s", user_id)
                return cached

        timeout = self._timeout if timeout is None else timeout
        started = time.monotonic()

        logger.debug("Loading context from database user=%s", user_id)
        snapshot = self._store.get_user_with_assignments(user_id)
        context = build_context(user_id, snapshot)

        if timeout is not None and time.monotonic() - started > timeout:
            logger.warning("Context load for user=%s exceeded %ss; not caching", user_id, timeout)
            raise ContextLoadTimeoutError()

        if self._cache is not None:
            self._cache.put(context)
        return context

    def load_permissions(self, user_id: int) -> frozenset[str]:
        return self.load(user_id).permissions

    def load_menu_codes(self, user_id: int) -> frozenset[str]:
        return self.load(user_id).menu_codes

    def invalidate(self, user_id: int) -> bool:
        if self._cache is None:
            return True
        return self._cache.invalidate(user_id)

    def invalidate_many(self, user_ids: Iterable[int]) -> bool:
        if self._cache is None:
            return True
        return self._cache.invalidate_many(user_ids)


def build_context(user_id: int, snapshot: UserSnapshot | None, now: datetime | None = None) -> UserContext:
    """Validate the snapshot and reduce its active assignments to a context."""

    if snapshot is None:
        raise UserNotFoundError(user_id)
    if snapshot.status is not UserStatus.ACTIVE:
        raise UserInactiveError(user_id, snapshot.status.value)

    now = now or utcnow()
    active = active_assignments(snapshot.assignments, now)
    if not active:
        raise NoActiveRoleError(user_id)

    permissions: set[str] = set()
    menu_codes: set[str] = set()
    for assignment in active:
        permissions.update(assignment.permission_codes)
        menu_codes.update(assignment.menu_codes)

    newest_first = sorted(active, key=lambda a: (a.assigned_at, a.assignment_id), reverse=True)
    role_names = tuple(dict.fromkeys(a.role.name for a in newest_first))

    return UserContext(
        user_id=snapshot.user_id,
        primary_role_name=newest_first[0].role.name,
        role_names=role_names,
        organization_id=snapshot.organization_id,
        tutor_id=snapshot.tutor_id,
        permissions=frozenset(permissions),
        menu_codes=frozenset(menu_codes),
        data_scope=DataScope.highest(a.role.data_scope for a in active),
    )


def active_assignments(assignments: Iterable[AssignmentRecord], now: datetime) -> list[AssignmentRecord]:
    return [a for a in assignments if a.is_active(now)]
