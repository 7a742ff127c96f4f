"""Admin "view as" selector.

Admins can preview the site as a provider or a traveler. The selector is a
session-scoped value object: a new one (set to ``admin``) is created on
every sign-in and nothing is persisted. Impersonation only narrows an
admin's own view; for everyone else :meth:`ViewAsSelector.effective_role`
is ``None`` and the selection is ignored.
"""

from __future__ import annotations

import logging

from pymedtrip.models.roles import ViewAsRole

_logger = logging.getLogger(__name__)


class ViewAsSelector:
    """Current impersonated role for one session."""

    def __init__(self, role: ViewAsRole = ViewAsRole.ADMIN) -> None:
        self._role = ViewAsRole(role)

    def __repr__(self) -> str:
        return f"ViewAsSelector(role={self._role.value!r})"

    @property
    def role(self) -> ViewAsRole:
        return self._role

    @property
    def is_viewing_as(self) -> bool:
        return self._role != ViewAsRole.ADMIN

    def set(self, role: ViewAsRole | str) -> ViewAsRole:
        """Select *role*. Unknown role names raise :class:`ValueError`."""
        self._role = ViewAsRole(role)
        _logger.debug("View-as role set to %s", self._role.value)
        return self._role

    def reset(self) -> None:
        self._role = ViewAsRole.ADMIN

    def effective_role(self, is_admin: bool) -> ViewAsRole | None:
        """The role to render for, or ``None`` when the caller is not an admin."""
        if not is_admin:
            return None
        return self._role

    def switcher_visible(self, *, is_admin: bool, loading: bool = False) -> bool:
        """Whether the role switcher control should be shown."""
        return is_admin and not loading

    def banner_label(self, *, is_admin: bool, loading: bool = False) -> str | None:
        """Label for the "viewing as" banner, ``None`` when no banner is due."""
        if loading or not is_admin or not self.is_viewing_as:
            return None
        return self._role.label
