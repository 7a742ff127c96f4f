"""pymedtrip - Async client for the medical-tourism marketplace backend."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymedtrip")
except PackageNotFoundError:
    __version__ = "0+local"
from pymedtrip._cache import FileCache, LocalCache, MemoryCache
from pymedtrip.client import MedTripClient
from pymedtrip.config import MedTripConfig
from pymedtrip.exceptions import (
    MedTripApiError,
    MedTripAuthenticationError,
    MedTripConfigError,
    MedTripError,
    MedTripNotInitializedError,
    MedTripTransportError,
)
from pymedtrip.gate.access import (
    AccessGate,
    GateDecision,
    GateOutcome,
    evaluate_access,
    evaluate_admin_access,
)
from pymedtrip.gate.roles import RoleResolver
from pymedtrip.gate.view_as import ViewAsSelector
from pymedtrip.models import AuthUser, PlannerStateRow, RoleName, UserProfile, ViewAsRole
from pymedtrip.session import IdentityState, SessionContext
from pymedtrip.sync import StateSynchronizer, SyncedState

__all__ = [
    "__version__",
    "AccessGate",
    "AuthUser",
    "FileCache",
    "GateDecision",
    "GateOutcome",
    "IdentityState",
    "LocalCache",
    "MedTripApiError",
    "MedTripAuthenticationError",
    "MedTripClient",
    "MedTripConfig",
    "MedTripConfigError",
    "MedTripError",
    "MedTripNotInitializedError",
    "MedTripTransportError",
    "MemoryCache",
    "PlannerStateRow",
    "RoleName",
    "RoleResolver",
    "SessionContext",
    "StateSynchronizer",
    "SyncedState",
    "UserProfile",
    "ViewAsRole",
    "ViewAsSelector",
    "evaluate_access",
    "evaluate_admin_access",
]
