"""Identity and profile models."""

from __future__ import annotations

from pydantic import Field

from pymedtrip.models._base import MedTripBaseModel


class AuthUser(MedTripBaseModel):
    """The signed-in subject as issued by the auth service."""

    id: str = Field(..., min_length=1)
    email: str | None = None


class UserProfile(MedTripBaseModel):
    """Row from the ``profiles`` table.

    Only the columns the access gate and the UI shell need are modelled;
    everything else stays available through ``raw``.
    """

    user_id: str
    provider_slug: str | None = None
    onboarding_complete: bool = False
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    verification_tier: str | None = None

    @property
    def is_provider(self) -> bool:
        """A profile belongs to a provider once it carries a provider slug."""
        return bool(self.provider_slug and self.provider_slug.strip())
