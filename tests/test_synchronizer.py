from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from pymedtrip._cache import MemoryCache
from pymedtrip.exceptions import MedTripTransportError
from pymedtrip.sync.synchronizer import StateSynchronizer

_SUBJECT = "user-1"
_SCOPE = "booking-1"
_KEY = "pre-op-checklist"
_CACHE_KEY = f"{_KEY}-{_SCOPE}"


class _FakeRemote:
    """In-memory remote store that records upserts with their loop time."""

    def __init__(
        self,
        rows: dict[tuple[str, str, str], Any] | None = None,
        *,
        read_delay: float = 0.0,
        read_error: Exception | None = None,
        write_error: Exception | None = None,
    ) -> None:
        self.rows = dict(rows or {})
        self.read_delay = read_delay
        self.read_error = read_error
        self.write_error = write_error
        self.reads: list[tuple[str, str, str]] = []
        self.upserts: list[tuple[float, Any]] = []

    async def read(self, subject_id: str, scope_id: str, state_key: str) -> Any | None:
        key = (subject_id, scope_id, state_key)
        self.reads.append(key)
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if self.read_error is not None:
            raise self.read_error
        return self.rows.get(key)

    async def upsert(self, subject_id: str, scope_id: str, state_key: str, payload: Any) -> None:
        self.upserts.append((asyncio.get_running_loop().time(), payload))
        if self.write_error is not None:
            raise self.write_error
        self.rows[(subject_id, scope_id, state_key)] = payload


def _sync(
    remote: _FakeRemote,
    cache: MemoryCache,
    *,
    subject_id: str | None = _SUBJECT,
    debounce_ms: int = 50,
    **kwargs: Any,
) -> StateSynchronizer:
    return StateSynchronizer(cache, remote, subject_id=subject_id, debounce_ms=debounce_ms, **kwargs)


@pytest.mark.asyncio
async def test_cold_start_returns_default_and_finishes_loading() -> None:
    remote = _FakeRemote()
    state = _sync(remote, MemoryCache()).open(_SCOPE, _KEY, {"passport": False})

    value, write, loading = state
    assert value == {"passport": False}
    assert loading is True
    assert callable(write)

    assert await state.wait_loaded() == {"passport": False}
    assert state.is_loading is False
    assert remote.reads == [(_SUBJECT, _SCOPE, _KEY)]


@pytest.mark.asyncio
async def test_anonymous_skips_remote_and_is_not_loading() -> None:
    remote = _FakeRemote()
    cache = MemoryCache()
    cache.set(_CACHE_KEY, json.dumps({"visa": True}))

    state = _sync(remote, cache, subject_id=None).open(_SCOPE, _KEY, {})

    assert state.is_loading is False
    assert state.value == {"visa": True}

    state.set({"visa": False})
    await asyncio.sleep(0.1)
    assert remote.reads == []
    assert remote.upserts == []
    assert json.loads(cache.get(_CACHE_KEY) or "null") == {"visa": False}


@pytest.mark.asyncio
async def test_remote_wins_on_load() -> None:
    cache = MemoryCache()
    cache.set(_CACHE_KEY, json.dumps("A"))
    remote = _FakeRemote({(_SUBJECT, _SCOPE, _KEY): "B"})

    state = _sync(remote, cache).open(_SCOPE, _KEY, "default")
    assert state.value == "A"

    await state.wait_loaded()
    assert state.value == "B"
    assert json.loads(cache.get(_CACHE_KEY) or "null") == "B"


@pytest.mark.asyncio
async def test_failed_read_falls_back_to_cache() -> None:
    cache = MemoryCache()
    cache.set(_CACHE_KEY, json.dumps([1, 2]))
    remote = _FakeRemote(read_error=MedTripTransportError("offline"))

    state = _sync(remote, cache).open(_SCOPE, _KEY, [])

    assert await state.wait_loaded() == [1, 2]
    assert state.is_loading is False


@pytest.mark.asyncio
async def test_corrupt_cache_entry_uses_default() -> None:
    cache = MemoryCache()
    cache.set(_CACHE_KEY, "{not json")

    state = _sync(_FakeRemote(), cache, subject_id=None).open(_SCOPE, _KEY, {"fresh": True})

    assert state.value == {"fresh": True}


@pytest.mark.asyncio
async def test_debounce_coalesces_burst_into_one_upsert() -> None:
    remote = _FakeRemote()
    state = _sync(remote, MemoryCache(), debounce_ms=50).open(_SCOPE, _KEY, 0)
    await state.wait_loaded()
    loop = asyncio.get_running_loop()

    state.set(1)
    await asyncio.sleep(0.01)
    state.set(2)
    await asyncio.sleep(0.01)
    last_write_at = loop.time()
    state.set(3)

    await asyncio.sleep(0.15)

    assert [payload for _, payload in remote.upserts] == [3]
    sent_at, _ = remote.upserts[0]
    # call_later may fire up to one clock tick early
    assert sent_at - last_write_at >= 0.05 - 0.01


@pytest.mark.asyncio
async def test_local_cache_reflects_every_write_immediately() -> None:
    cache = MemoryCache()
    state = _sync(_FakeRemote(), cache).open(_SCOPE, _KEY, {})

    for item in ("passport", "visa", "insurance"):
        result = state.set(lambda prev, item=item: {**prev, item: True})
        assert json.loads(cache.get(_CACHE_KEY) or "null") == result
        assert state.value == result

    assert state.value == {"passport": True, "visa": True, "insurance": True}
    await state.aclose()


@pytest.mark.asyncio
async def test_close_before_window_sends_nothing() -> None:
    remote = _FakeRemote()
    state = _sync(remote, MemoryCache()).open(_SCOPE, _KEY, 0)
    await state.wait_loaded()

    state.set(42)
    assert state.has_pending_write
    state.close()
    await asyncio.sleep(0.1)

    assert remote.upserts == []
    assert state.closed


@pytest.mark.asyncio
async def test_write_after_close_is_ignored() -> None:
    remote = _FakeRemote()
    cache = MemoryCache()
    state = _sync(remote, cache).open(_SCOPE, _KEY, 0)
    await state.wait_loaded()
    state.set(1)
    await state.aclose()

    assert state.set(2) == 1
    assert state.set(lambda prev: prev + 10) == 1
    await asyncio.sleep(0.1)

    assert state.value == 1
    assert cache.get(_CACHE_KEY) == "1"
    assert not state.has_pending_write
    assert remote.upserts == []


@pytest.mark.asyncio
async def test_unserializable_write_leaves_state_untouched() -> None:
    remote = _FakeRemote()
    cache = MemoryCache()
    state = _sync(remote, cache).open(_SCOPE, _KEY, {"passport": False})
    await state.wait_loaded()

    assert state.set({"when": object()}) == {"passport": False}
    await asyncio.sleep(0.1)

    assert state.value == {"passport": False}
    assert cache.get(_CACHE_KEY) is None
    assert not state.has_pending_write
    assert remote.upserts == []

    state.set({"passport": True})
    await asyncio.sleep(0.1)
    assert [payload for _, payload in remote.upserts] == [{"passport": True}]
    await state.aclose()


@pytest.mark.asyncio
async def test_flush_on_close_sends_pending_value() -> None:
    remote = _FakeRemote()
    state = _sync(remote, MemoryCache(), debounce_ms=10_000, flush_on_close=True).open(_SCOPE, _KEY, 0)
    await state.wait_loaded()

    state.set(7)
    await state.aclose()

    assert [payload for _, payload in remote.upserts] == [7]


@pytest.mark.asyncio
async def test_loading_transitions_once_even_when_closed_mid_read() -> None:
    remote = _FakeRemote({(_SUBJECT, _SCOPE, _KEY): "remote"}, read_delay=0.05)
    state = _sync(remote, MemoryCache()).open(_SCOPE, _KEY, "default")

    state.close()
    await asyncio.sleep(0.1)

    assert state.is_loading is False
    assert state.value == "default"


@pytest.mark.asyncio
async def test_remote_value_overrides_write_made_during_load_by_default() -> None:
    remote = _FakeRemote({(_SUBJECT, _SCOPE, _KEY): "remote"}, read_delay=0.03)
    state = _sync(remote, MemoryCache()).open(_SCOPE, _KEY, "default")

    state.set("local edit")
    await state.wait_loaded()

    assert state.value == "remote"
    await state.aclose()


@pytest.mark.asyncio
async def test_write_during_load_kept_when_remote_does_not_win() -> None:
    cache = MemoryCache()
    remote = _FakeRemote({(_SUBJECT, _SCOPE, _KEY): "remote"}, read_delay=0.03)
    state = _sync(remote, cache, remote_wins_during_load=False).open(_SCOPE, _KEY, "default")

    state.set("local edit")
    await state.wait_loaded()

    assert state.value == "local edit"
    assert json.loads(cache.get(_CACHE_KEY) or "null") == "local edit"
    await state.aclose()


@pytest.mark.asyncio
async def test_failed_upsert_is_reported_not_raised() -> None:
    errors: list[BaseException] = []
    remote = _FakeRemote(write_error=MedTripTransportError("offline"))
    state = _sync(remote, MemoryCache(), on_remote_error=errors.append).open(_SCOPE, _KEY, 0)
    await state.wait_loaded()

    state.set(1)
    await asyncio.sleep(0.1)

    assert len(remote.upserts) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], MedTripTransportError)
    assert state.value == 1


@pytest.mark.asyncio
async def test_synchronizer_aclose_closes_all_open_states() -> None:
    remote = _FakeRemote()
    sync = _sync(remote, MemoryCache())
    first = sync.open(_SCOPE, "packing", [])
    second = sync.open(_SCOPE, "itinerary", {})
    first.set(["charger"])
    second.set({"day1": "arrive"})

    assert len(sync.open_states) == 2
    await sync.aclose()

    assert first.closed and second.closed
    assert sync.open_states == frozenset()
    await asyncio.sleep(0.1)
    assert remote.upserts == []


@pytest.mark.asyncio
async def test_open_requires_scope_and_key() -> None:
    with pytest.raises(ValueError):
        _sync(_FakeRemote(), MemoryCache()).open("", _KEY, None)
