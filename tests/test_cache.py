from __future__ import annotations

from pathlib import Path

import pytest

from pymedtrip._cache import FileCache, MemoryCache
from pymedtrip._constants import cache_key


def test_cache_key_is_state_key_then_scope() -> None:
    assert cache_key("booking-1", "pre-op") == "pre-op-booking-1"


def test_memory_cache_roundtrip() -> None:
    cache = MemoryCache()
    assert cache.get("missing") is None
    cache.set("k", '{"a": 1}')
    assert cache.get("k") == '{"a": 1}'
    assert "k" in cache
    assert len(cache) == 1


def test_file_cache_survives_new_instance(tmp_path: Path) -> None:
    FileCache(tmp_path / "cache").set("packing-booking/1", "[1, 2]")

    assert FileCache(tmp_path / "cache").get("packing-booking/1") == "[1, 2]"


def test_file_cache_corrupt_entry_is_a_miss(tmp_path: Path) -> None:
    cache = FileCache(tmp_path)
    cache.set("k", "1")
    for path in tmp_path.glob("*.json"):
        path.write_text("{not json", encoding="utf-8")

    assert cache.get("k") is None


def test_file_cache_write_failure_is_swallowed(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    cache = FileCache(blocker / "cache")

    cache.set("k", "1")

    assert cache.get("k") is None


def test_file_cache_writers_sharing_a_directory_leave_no_temp_files(tmp_path: Path) -> None:
    first = FileCache(tmp_path)
    second = FileCache(tmp_path)

    for n in range(5):
        first.set("checklist-b1", f'{{"n": {n}}}')
        second.set("checklist-b1", f'{{"n": {n + 100}}}')

    assert first.get("checklist-b1") == '{"n": 104}'
    assert list(tmp_path.glob("*.tmp")) == []
    assert len(list(tmp_path.glob("*.json"))) == 1


def test_file_cache_failed_write_removes_temp_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cache = FileCache(tmp_path)
    cache.set("k", "1")

    def _fail_replace(src: str, dst: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr("pymedtrip._cache.os.replace", _fail_replace)
    cache.set("k", "2")

    assert cache.get("k") == "1"
    assert list(tmp_path.glob("*.tmp")) == []
