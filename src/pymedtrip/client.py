"""High-level async client for the marketplace backend."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import aiohttp

from pymedtrip._cache import FileCache, LocalCache, MemoryCache
from pymedtrip._constants import PROFILES_TABLE
from pymedtrip._transport import RestTransport, Transport
from pymedtrip.config import MedTripConfig
from pymedtrip.exceptions import MedTripError, MedTripNotInitializedError
from pymedtrip.gate.access import AccessGate, GateDecision
from pymedtrip.gate.roles import PostgrestRoleChecker, RoleChecker, RoleResolver
from pymedtrip.gate.view_as import ViewAsSelector
from pymedtrip.models.profile import AuthUser, UserProfile
from pymedtrip.models.roles import RoleName
from pymedtrip.session import IdentityState, SessionContext
from pymedtrip.sync.store import PostgrestStateStore, RemoteStateStore
from pymedtrip.sync.synchronizer import RemoteErrorCallback, StateSynchronizer, SyncedState

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class MedTripClient:
    """Async client for trip planner state and access gating.

    Usage::

        async with MedTripClient(config) as client:
            await client.sign_in(user, access_token)
            checklist = client.open_state(booking_id, "pre-op-checklist", {})
            checklist.set(lambda prev: {**prev, "passport": True})
            decision = await client.check_access("/dashboard")

    *transport*, *remote* and *roles* replace the REST-backed defaults,
    mainly for tests.
    """

    def __init__(
        self,
        config: MedTripConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        cache: LocalCache | None = None,
        transport: Transport | None = None,
        remote: RemoteStateStore | None = None,
        roles: RoleChecker | None = None,
        on_remote_error: RemoteErrorCallback | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._remote = remote
        self._role_checker = roles
        self._on_remote_error = on_remote_error
        if cache is None:
            cache = FileCache(config.cache_dir) if config.cache_dir is not None else MemoryCache()
        self._cache = cache
        self._resolver: RoleResolver | None = None
        self._gate: AccessGate | None = None
        self._session: SessionContext | None = None
        self._identity = IdentityState.resolving()
        self._synchronizer: StateSynchronizer | None = None
        self._entered = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> MedTripClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = RestTransport(self._config, self._http_session)
        if self._remote is None:
            self._remote = PostgrestStateStore(self._transport)
        if self._role_checker is None:
            self._role_checker = PostgrestRoleChecker(self._transport)
        self._resolver = RoleResolver(self._role_checker)
        self._gate = AccessGate(self._resolver, self._config)
        self._entered = True
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._close_synchronizer()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._entered = False

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def identity(self) -> IdentityState:
        return self._identity

    @property
    def session(self) -> SessionContext | None:
        return self._session

    @property
    def cache(self) -> LocalCache:
        return self._cache

    @property
    def remote(self) -> RemoteStateStore:
        """Remote planner state store, bypassing the local cache."""
        self._require_entered()
        assert self._remote is not None  # noqa: S101
        return self._remote

    @property
    def view_as(self) -> ViewAsSelector | None:
        """Impersonation selector of the current session, if any."""
        return self._session.view_as if self._session is not None else None

    async def sign_in(
        self,
        user: AuthUser,
        access_token: str,
        profile: UserProfile | None = None,
    ) -> SessionContext:
        """Start a session for *user*.

        Any previous session is closed first. When *profile* is not given
        it is fetched from the backend; a failed fetch leaves it unset.
        """
        self._require_entered()
        if self._session is not None:
            await self.sign_out()
        else:
            await self._close_synchronizer()

        if isinstance(self._transport, RestTransport):
            self._transport.set_access_token(access_token)
        if profile is None:
            try:
                profile = await self.fetch_profile(user.id)
            except MedTripError:
                _logger.warning("Profile fetch failed for %s; continuing without profile", user.id, exc_info=True)

        self._identity = IdentityState.signed_in(user, profile)
        self._session = SessionContext(identity=self._identity, access_token=access_token)
        self._require_resolver().reset()
        _logger.debug("Signed in user=%s provider=%s", user.id, self._identity.is_provider)
        return self._session

    async def sign_out(self) -> None:
        """End the session; open synchronized states are closed."""
        await self._close_synchronizer()
        if self._resolver is not None:
            self._resolver.reset()
        if isinstance(self._transport, RestTransport):
            self._transport.set_access_token(None)
        self._session = None
        self._identity = IdentityState.anonymous()

    def mark_anonymous(self) -> None:
        """Record that identity resolution finished without a signed-in user."""
        if self._session is None:
            self._identity = IdentityState.anonymous()

    async def fetch_profile(self, user_id: str) -> UserProfile | None:
        transport = self._require_transport()
        rows = await transport.select(PROFILES_TABLE, filters={"user_id": user_id}, limit=1)
        if not rows:
            return None
        return UserProfile.model_validate(rows[0])

    # ------------------------------------------------------------------
    # State synchronization
    # ------------------------------------------------------------------

    @property
    def synchronizer(self) -> StateSynchronizer:
        """Synchronizer for the current subject (anonymous when signed out)."""
        self._require_entered()
        subject_id = self._identity.user_id
        if self._synchronizer is None or self._synchronizer.subject_id != subject_id:
            assert self._remote is not None  # noqa: S101
            self._synchronizer = StateSynchronizer(
                self._cache,
                self._remote,
                subject_id=subject_id,
                debounce_ms=self._config.debounce_ms,
                flush_on_close=self._config.flush_on_close,
                remote_wins_during_load=self._config.remote_wins_during_load,
                on_remote_error=self._on_remote_error,
            )
        return self._synchronizer

    def open_state(self, scope_id: str, state_key: str, default_value: T) -> SyncedState[T]:
        """Open a synchronized document; see :meth:`StateSynchronizer.open`."""
        return self.synchronizer.open(scope_id, state_key, default_value)

    async def _close_synchronizer(self) -> None:
        if self._synchronizer is not None:
            await self._synchronizer.aclose()
            self._synchronizer = None

    # ------------------------------------------------------------------
    # Roles and access
    # ------------------------------------------------------------------

    async def has_role(self, role: RoleName | str) -> bool:
        return await self._require_resolver().has_role(self._identity.user_id, RoleName(role))

    async def is_admin(self) -> bool:
        return await self._require_resolver().is_admin(self._identity.user_id)

    async def check_access(self, path: str, *, require_admin: bool = False) -> GateDecision:
        """Gate decision for navigating to *path* with the current identity."""
        self._require_entered()
        assert self._gate is not None  # noqa: S101
        return await self._gate.check(
            self._identity,
            path,
            view_as=self.view_as,
            require_admin=require_admin,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_entered(self) -> None:
        if not self._entered:
            raise MedTripNotInitializedError("Client not initialized. Use 'async with MedTripClient(...) as client:'")

    def _require_transport(self) -> Transport:
        self._require_entered()
        assert self._transport is not None  # noqa: S101
        return self._transport

    def _require_resolver(self) -> RoleResolver:
        self._require_entered()
        assert self._resolver is not None  # noqa: S101
        return self._resolver
