"""Debounced dual-write of JSON state to a local cache and the remote store.

Reads are served from memory, seeded from the local cache and replaced by
the remote row once it arrives. Writes hit the local cache immediately and
reach the remote store after a quiet period; a burst of writes produces a
single remote upsert carrying the last value.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar

from pymedtrip._cache import LocalCache
from pymedtrip._constants import DEFAULT_DEBOUNCE_MS, cache_key
from pymedtrip.sync.scheduler import DebouncedCall
from pymedtrip.sync.store import RemoteStateStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")

RemoteErrorCallback = Callable[[BaseException], None]


class SyncedState(Generic[T]):
    """One open synchronized document, addressed by ``(scope_id, state_key)``.

    Unpacks to ``(value, set, is_loading)``::

        value, write, loading = synchronizer.open("booking-1", "checklist", {})

    The unpacked ``value`` and ``loading`` are snapshots; keep the
    ``SyncedState`` around to observe later changes.
    """

    def __init__(
        self,
        *,
        scope_id: str,
        state_key: str,
        default: T,
        subject_id: str | None,
        local: LocalCache,
        remote: RemoteStateStore,
        debounce_seconds: float,
        flush_on_close: bool = False,
        remote_wins_during_load: bool = True,
        on_remote_error: RemoteErrorCallback | None = None,
        on_close: Callable[[SyncedState[Any]], None] | None = None,
    ) -> None:
        self._scope_id = scope_id
        self._state_key = state_key
        self._subject_id = subject_id
        self._local = local
        self._remote = remote
        self._flush_on_close = flush_on_close
        self._remote_wins_during_load = remote_wins_during_load
        self._on_remote_error = on_remote_error
        self._on_close = on_close
        self._cache_key = cache_key(scope_id, state_key)
        self._writes = 0
        self._closed = False
        self._loaded = asyncio.Event()
        self._load_task: asyncio.Task[None] | None = None
        self._debounced: DebouncedCall[T] = DebouncedCall(debounce_seconds, self._push)
        self._value: T = self._seed(default)

        if subject_id is None:
            self._is_loading = False
            self._loaded.set()
        else:
            self._is_loading = True
            self._load_task = asyncio.get_running_loop().create_task(self._load(subject_id))

    def __repr__(self) -> str:
        return (
            f"SyncedState(scope_id={self._scope_id!r}, state_key={self._state_key!r}, "
            f"loading={self._is_loading}, closed={self._closed})"
        )

    def __iter__(self) -> Iterator[Any]:
        return iter((self._value, self.set, self._is_loading))

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def value(self) -> T:
        return self._value

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def scope_id(self) -> str:
        return self._scope_id

    @property
    def state_key(self) -> str:
        return self._state_key

    @property
    def cache_key(self) -> str:
        return self._cache_key

    @property
    def has_pending_write(self) -> bool:
        return self._debounced.has_pending

    async def wait_loaded(self) -> T:
        """Wait until the initial remote read settled and return the value."""
        await self._loaded.wait()
        return self._value

    def _seed(self, default: T) -> T:
        saved = self._local.get(self._cache_key)
        if saved:
            try:
                return json.loads(saved)
            except (TypeError, ValueError):
                _logger.debug("Ignoring unreadable cache entry %s", self._cache_key)
        return copy.deepcopy(default)

    async def _load(self, subject_id: str) -> None:
        writes_at_start = self._writes
        try:
            try:
                payload = await self._remote.read(subject_id, self._scope_id, self._state_key)
            except Exception:
                _logger.warning(
                    "Remote read failed for %s/%s/%s; using cached value",
                    subject_id,
                    self._scope_id,
                    self._state_key,
                    exc_info=True,
                )
                payload = None

            if payload is None or self._closed:
                return
            if not self._remote_wins_during_load and self._writes != writes_at_start:
                _logger.debug("Keeping local write made during load of %s", self._cache_key)
                return
            self._value = payload
            self._write_local(payload)
        finally:
            self._is_loading = False
            self._loaded.set()

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def set(self, value_or_updater: T | Callable[[T], T]) -> T:
        """Replace the value, or derive it from the previous one.

        The local cache is written before this returns; the remote upsert
        is scheduled after the debounce window. Writes after close, and
        values that cannot be serialized to JSON, are logged and ignored;
        the current value is returned unchanged.
        """
        if self._closed:
            _logger.debug("Ignoring write to closed state %s", self._cache_key)
            return self._value

        if callable(value_or_updater):
            next_value = value_or_updater(self._value)
        else:
            next_value = value_or_updater

        try:
            encoded = json.dumps(next_value)
        except (TypeError, ValueError):
            _logger.warning("Ignoring write of non-JSON value to %s", self._cache_key, exc_info=True)
            return self._value

        self._writes += 1
        self._value = next_value
        self._local.set(self._cache_key, encoded)
        if self._subject_id is not None:
            self._debounced.schedule(next_value)
        return next_value

    def _write_local(self, value: Any) -> None:
        self._local.set(self._cache_key, json.dumps(value))

    async def _push(self, value: T) -> None:
        assert self._subject_id is not None  # noqa: S101
        try:
            await self._remote.upsert(self._subject_id, self._scope_id, self._state_key, value)
        except Exception as exc:
            _logger.warning(
                "Remote upsert failed for %s/%s/%s; value kept locally only",
                self._subject_id,
                self._scope_id,
                self._state_key,
                exc_info=True,
            )
            if self._on_remote_error is not None:
                try:
                    self._on_remote_error(exc)
                except Exception:
                    _logger.debug("on_remote_error callback failed", exc_info=True)
        else:
            _logger.debug("Synced %s to remote store", self._cache_key)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Cancel pending work. A pending debounced write is dropped."""
        if self._closed:
            return
        self._closed = True
        if self._debounced.cancel():
            _logger.debug("Dropped pending remote write for %s on close", self._cache_key)
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
            # A task cancelled before its first step never runs _load's finally.
            self._is_loading = False
            self._loaded.set()
        if self._on_close is not None:
            self._on_close(self)

    async def aclose(self) -> None:
        """Close, flushing the pending write first when configured to."""
        if self._closed:
            return
        if self._flush_on_close:
            await self._debounced.flush()
        self.close()
        await self._debounced.drain()
        if self._load_task is not None:
            await asyncio.gather(self._load_task, return_exceptions=True)


class StateSynchronizer:
    """Opens synchronized documents for one subject.

    Parameters
    ----------
    local : LocalCache
        Synchronous cache written on every change.
    remote : RemoteStateStore
        Remote store; reads on open, debounced upserts on write.
    subject_id : str or None
        Owning user. ``None`` means anonymous: values live in the local
        cache only and nothing is read from or sent to the remote store.
    debounce_ms : int
        Remote write quiet period.
    """

    def __init__(
        self,
        local: LocalCache,
        remote: RemoteStateStore,
        *,
        subject_id: str | None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        flush_on_close: bool = False,
        remote_wins_during_load: bool = True,
        on_remote_error: RemoteErrorCallback | None = None,
    ) -> None:
        self._local = local
        self._remote = remote
        self._subject_id = subject_id
        self._debounce_seconds = debounce_ms / 1000.0
        self._flush_on_close = flush_on_close
        self._remote_wins_during_load = remote_wins_during_load
        self._on_remote_error = on_remote_error
        self._open: set[SyncedState[Any]] = set()

    @property
    def subject_id(self) -> str | None:
        return self._subject_id

    @property
    def open_states(self) -> frozenset[SyncedState[Any]]:
        return frozenset(self._open)

    def open(self, scope_id: str, state_key: str, default_value: T) -> SyncedState[T]:
        """Open ``(scope_id, state_key)``; must be called from a running loop."""
        if not scope_id or not state_key:
            raise ValueError("scope_id and state_key must be non-empty")
        state: SyncedState[T] = SyncedState(
            scope_id=scope_id,
            state_key=state_key,
            default=default_value,
            subject_id=self._subject_id,
            local=self._local,
            remote=self._remote,
            debounce_seconds=self._debounce_seconds,
            flush_on_close=self._flush_on_close,
            remote_wins_during_load=self._remote_wins_during_load,
            on_remote_error=self._on_remote_error,
            on_close=self._open.discard,
        )
        self._open.add(state)
        return state

    async def aclose(self) -> None:
        """Close every document opened through this synchronizer."""
        for state in list(self._open):
            await state.aclose()
