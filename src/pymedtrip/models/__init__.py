"""Row and enum models for the marketplace backend."""

from pymedtrip.models.planner_state import PlannerStateRow
from pymedtrip.models.profile import AuthUser, UserProfile
from pymedtrip.models.roles import RoleName, ViewAsRole

__all__ = [
    "AuthUser",
    "PlannerStateRow",
    "RoleName",
    "UserProfile",
    "ViewAsRole",
]
