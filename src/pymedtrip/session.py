"""Identity and session state for the signed-in user."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict

from pymedtrip.gate.view_as import ViewAsSelector
from pymedtrip.models.profile import AuthUser, UserProfile


class IdentityState(BaseModel):
    """What the identity provider currently knows about the user.

    ``loading`` is ``True`` until the auth state has been resolved; only
    then does ``user is None`` mean "anonymous".
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    loading: bool = True
    user: AuthUser | None = None
    profile: UserProfile | None = None

    @classmethod
    def resolving(cls) -> IdentityState:
        return cls(loading=True)

    @classmethod
    def anonymous(cls) -> IdentityState:
        return cls(loading=False)

    @classmethod
    def signed_in(cls, user: AuthUser, profile: UserProfile | None = None) -> IdentityState:
        return cls(loading=False, user=user, profile=profile)

    @property
    def user_id(self) -> str | None:
        return self.user.id if self.user is not None else None

    @property
    def is_authenticated(self) -> bool:
        return not self.loading and self.user is not None

    @property
    def is_provider(self) -> bool:
        return self.profile is not None and self.profile.is_provider

    @property
    def onboarding_complete(self) -> bool:
        return self.profile is not None and self.profile.onboarding_complete


@dataclass
class SessionContext:
    """State that lives exactly as long as one sign-in.

    Parameters
    ----------
    identity : IdentityState
        Resolved identity for the session.
    access_token : str
        Bearer token issued by the auth service.
    view_as : ViewAsSelector
        Impersonation selector; always starts at ``admin``.
    created_at : float
        Monotonic timestamp of the sign-in.
    """

    identity: IdentityState
    access_token: str
    view_as: ViewAsSelector = field(default_factory=ViewAsSelector)
    created_at: float = field(default_factory=time.monotonic)

    @property
    def user_id(self) -> str | None:
        return self.identity.user_id

    @property
    def age(self) -> float:
        """Seconds since the session was created."""
        return time.monotonic() - self.created_at
