"""Internal constants shared across the library."""

USER_AGENT = "pymedtrip/0.1"
REST_PREFIX = "/rest/v1"

# ------------------------------------------------------------------
# Tables
# ------------------------------------------------------------------

PLANNER_STATE_TABLE = "trip_planner_state"
PLANNER_STATE_CONFLICT: tuple[str, ...] = ("user_id", "booking_id", "state_key")
USER_ROLES_TABLE = "user_roles"
PROFILES_TABLE = "profiles"

# ------------------------------------------------------------------
# Defaults
# ------------------------------------------------------------------

DEFAULT_DEBOUNCE_MS = 500
DEFAULT_SIGN_IN_PATH = "/auth"
DEFAULT_ONBOARDING_PATH = "/provider/onboarding"
DEFAULT_ADMIN_FALLBACK_PATH = "/"

# PostgREST / JWT error codes that mean the bearer token was rejected.
AUTH_ERROR_CODES: frozenset[str] = frozenset({"PGRST301", "PGRST302", "42501"})


def cache_key(scope_id: str, state_key: str) -> str:
    """Derive the local cache key for a synchronized record.

    The owning subject is not part of the key: the local cache mirrors
    whatever value was last seen on this device.
    """
    return f"{state_key}-{scope_id}"
