"""Per-navigation access decisions.

The decision functions are pure: given the identity, the requested path
and the already-resolved admin flag they return a :class:`GateDecision`.
:class:`AccessGate` resolves the admin flag (fail closed) and applies them.
Performing the redirect is the caller's job.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, model_validator

from pymedtrip._constants import (
    DEFAULT_ADMIN_FALLBACK_PATH,
    DEFAULT_ONBOARDING_PATH,
    DEFAULT_SIGN_IN_PATH,
)
from pymedtrip.config import MedTripConfig
from pymedtrip.gate.roles import RoleResolver
from pymedtrip.gate.view_as import ViewAsSelector
from pymedtrip.models.roles import ViewAsRole
from pymedtrip.session import IdentityState

_logger = logging.getLogger(__name__)


class GateOutcome(StrEnum):
    LOADING = "loading"
    PROCEED = "proceed"
    REDIRECT = "redirect"


class GateDecision(BaseModel):
    """Result of a gate evaluation; ``target`` is set only for redirects."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    outcome: GateOutcome
    target: str | None = None

    @model_validator(mode="after")
    def _check_target(self) -> GateDecision:
        if (self.outcome == GateOutcome.REDIRECT) != (self.target is not None):
            raise ValueError("target is required for redirects and only for redirects")
        return self

    @classmethod
    def loading(cls) -> GateDecision:
        return cls(outcome=GateOutcome.LOADING)

    @classmethod
    def proceed(cls) -> GateDecision:
        return cls(outcome=GateOutcome.PROCEED)

    @classmethod
    def redirect(cls, target: str) -> GateDecision:
        return cls(outcome=GateOutcome.REDIRECT, target=target)

    @property
    def is_loading(self) -> bool:
        return self.outcome == GateOutcome.LOADING

    @property
    def is_proceed(self) -> bool:
        return self.outcome == GateOutcome.PROCEED

    @property
    def is_redirect(self) -> bool:
        return self.outcome == GateOutcome.REDIRECT


def normalize_path(path: str) -> str:
    """Path component of *path* without query, fragment or trailing slash."""
    value = urlsplit(path).path or "/"
    if len(value) > 1:
        value = value.rstrip("/") or "/"
    return value


def evaluate_access(
    identity: IdentityState,
    path: str,
    *,
    is_admin: bool = False,
    view_as: ViewAsRole | None = None,
    onboarding_path: str = DEFAULT_ONBOARDING_PATH,
    sign_in_path: str = DEFAULT_SIGN_IN_PATH,
) -> GateDecision:
    """Decide whether *path* may be rendered for *identity*.

    Providers who have not finished onboarding are confined to the
    onboarding page. Admins are never confined. *view_as* only counts for
    admins, so the traveler preview exemption is already covered by the
    admin exemption.
    """
    if identity.loading:
        return GateDecision.loading()
    if identity.user is None:
        return GateDecision.redirect(sign_in_path)

    effective_view = view_as if is_admin else None
    on_onboarding_page = normalize_path(path) == normalize_path(onboarding_path)
    if (
        identity.is_provider
        and not identity.onboarding_complete
        and not on_onboarding_page
        and not is_admin
        and effective_view != ViewAsRole.TRAVELER
    ):
        return GateDecision.redirect(onboarding_path)
    return GateDecision.proceed()


def evaluate_admin_access(
    identity: IdentityState,
    *,
    is_admin: bool,
    roles_loading: bool = False,
    fallback_path: str = DEFAULT_ADMIN_FALLBACK_PATH,
    sign_in_path: str = DEFAULT_SIGN_IN_PATH,
) -> GateDecision:
    """Guard for admin-only pages: non-admins are sent to *fallback_path*."""
    if identity.loading or roles_loading:
        return GateDecision.loading()
    if identity.user is None:
        return GateDecision.redirect(sign_in_path)
    if not is_admin:
        return GateDecision.redirect(fallback_path)
    return GateDecision.proceed()


class AccessGate:
    """Applies the decision functions with a live role lookup."""

    def __init__(self, resolver: RoleResolver, config: MedTripConfig) -> None:
        self._resolver = resolver
        self._config = config

    async def check(
        self,
        identity: IdentityState,
        path: str,
        *,
        view_as: ViewAsSelector | None = None,
        require_admin: bool = False,
    ) -> GateDecision:
        is_admin = False
        if identity.is_authenticated:
            is_admin = await self._resolver.is_admin(identity.user_id)

        effective_view = view_as.effective_role(is_admin) if view_as is not None else None
        decision = evaluate_access(
            identity,
            path,
            is_admin=is_admin,
            view_as=effective_view,
            onboarding_path=self._config.onboarding_path,
            sign_in_path=self._config.sign_in_path,
        )
        if decision.is_proceed and require_admin:
            decision = evaluate_admin_access(
                identity,
                is_admin=is_admin,
                fallback_path=self._config.admin_fallback_path,
                sign_in_path=self._config.sign_in_path,
            )

        _logger.debug(
            "Gate %s for user=%s path=%s admin=%s -> %s",
            "admin page" if require_admin else "page",
            identity.user_id,
            path,
            is_admin,
            decision.outcome.value if decision.target is None else f"{decision.outcome.value} {decision.target}",
        )
        return decision
