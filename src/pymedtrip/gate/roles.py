"""Role membership lookups."""

from __future__ import annotations

import logging
from typing import Protocol

from pymedtrip._constants import USER_ROLES_TABLE
from pymedtrip._transport import Transport
from pymedtrip.models.roles import RoleName

_logger = logging.getLogger(__name__)


class RoleChecker(Protocol):
    """Answers "does user X hold role Y". May raise on backend failure."""

    async def has_role(self, user_id: str, role: RoleName) -> bool:
        ...


class PostgrestRoleChecker:
    """`RoleChecker` backed by the ``user_roles`` table (row present = member)."""

    def __init__(self, transport: Transport, *, table: str = USER_ROLES_TABLE) -> None:
        self._transport = transport
        self._table = table

    async def has_role(self, user_id: str, role: RoleName) -> bool:
        rows = await self._transport.select(
            self._table,
            filters={"user_id": user_id, "role": RoleName(role).value},
            columns="role",
            limit=1,
        )
        return bool(rows)


class RoleResolver:
    """Session-scoped, fail-closed view over a :class:`RoleChecker`.

    Answers are memoized per ``(user_id, role)`` until :meth:`reset`, which
    the client calls whenever the signed-in user changes. A lookup that
    raises counts as "not a member" and is not memoized, so the next check
    asks the backend again.
    """

    def __init__(self, checker: RoleChecker) -> None:
        self._checker = checker
        self._memo: dict[tuple[str, RoleName], bool] = {}

    def reset(self) -> None:
        self._memo.clear()

    def cached(self, user_id: str | None, role: RoleName) -> bool | None:
        """Memoized answer, ``None`` when the role has not been resolved yet."""
        if user_id is None:
            return False
        return self._memo.get((user_id, RoleName(role)))

    async def has_role(self, user_id: str | None, role: RoleName) -> bool:
        if user_id is None:
            return False
        role = RoleName(role)
        key = (user_id, role)
        if key in self._memo:
            return self._memo[key]

        try:
            member = await self._checker.has_role(user_id, role)
        except Exception:
            _logger.warning("Role lookup %s for %s failed; treating as absent", role.value, user_id, exc_info=True)
            return False

        self._memo[key] = bool(member)
        return self._memo[key]

    async def is_admin(self, user_id: str | None) -> bool:
        return await self.has_role(user_id, RoleName.ADMIN)

    async def is_beta_tester(self, user_id: str | None) -> bool:
        return await self.has_role(user_id, RoleName.BETA_TESTER)

    async def is_creator(self, user_id: str | None) -> bool:
        return await self.has_role(user_id, RoleName.CREATOR)
