"""Role enums."""

from __future__ import annotations

from enum import StrEnum


class RoleName(StrEnum):
    """Role memberships stored in the ``user_roles`` table."""

    ADMIN = "admin"
    BETA_TESTER = "beta_tester"
    CREATOR = "creator"


class ViewAsRole(StrEnum):
    """Which experience an admin is currently previewing."""

    ADMIN = "admin"
    PROVIDER = "provider"
    TRAVELER = "traveler"

    @property
    def label(self) -> str:
        return self.value.capitalize()
