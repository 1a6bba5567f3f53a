"""Tests for the storage reaper."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from magstream.main import create_app
from magstream.runtime.sessions import ActiveSessions
from magstream.services.reaper import StorageReaper

from tests.conftest import FakeSource


@pytest.fixture
def storage(tmp_path):
    root = tmp_path / "downloads"
    for key in ("idle", "busy"):
        (root / key / "Movie").mkdir(parents=True)
        (root / key / "Movie" / "movie.mp4").write_bytes(b"x" * 10)
    (root / "stray.part").write_bytes(b"y")
    return root


@pytest.mark.asyncio
async def test_active_bundles_are_kept(storage):
    sessions = ActiveSessions()
    sessions.acquire("busy")
    source = FakeSource()
    reaper = StorageReaper(storage, sessions, source)

    removed = await reaper.reap_once()

    assert sorted(removed) == ["idle", "stray.part"]
    assert sorted(source.evicted) == ["idle", "stray.part"]
    assert [p.name for p in storage.iterdir()] == ["busy"]


@pytest.mark.asyncio
async def test_released_bundle_is_reaped_next_cycle(storage):
    sessions = ActiveSessions()
    sessions.acquire("busy")
    sessions.acquire("busy")
    reaper = StorageReaper(storage, sessions)

    await reaper.reap_once()
    sessions.release("busy")
    assert (storage / "busy").exists()

    sessions.release("busy")
    await reaper.reap_once()
    assert list(storage.iterdir()) == []


@pytest.mark.asyncio
async def test_legacy_mode_clears_whole_root(storage):
    sessions = ActiveSessions()
    sessions.acquire("busy")
    reaper = StorageReaper(storage, sessions, respect_active_sessions=False)

    removed = await reaper.reap_once()

    assert sorted(removed) == ["busy", "idle", "stray.part"]
    assert not storage.exists()


@pytest.mark.asyncio
async def test_missing_root_is_not_an_error(tmp_path):
    reaper = StorageReaper(tmp_path / "nope", ActiveSessions())
    assert await reaper.reap_once() == []

    legacy = StorageReaper(tmp_path / "nope", ActiveSessions(), respect_active_sessions=False)
    assert await legacy.reap_once() == []


@pytest.mark.asyncio
async def test_deletion_failure_is_logged_not_raised(storage, monkeypatch):
    def boom(path):
        raise PermissionError(f"cannot remove {path}")

    monkeypatch.setattr("magstream.services.reaper._remove_entry", boom)
    reaper = StorageReaper(storage, ActiveSessions())

    assert await reaper.reap_once() == []
    assert (storage / "idle").exists()


@pytest.mark.asyncio
async def test_legacy_deletion_failure_is_logged_not_raised(storage, monkeypatch):
    def boom(path):
        raise OSError("device busy")

    monkeypatch.setattr("magstream.services.reaper.shutil.rmtree", boom)
    reaper = StorageReaper(storage, ActiveSessions(), respect_active_sessions=False)

    assert await reaper.reap_once() == []


@pytest.mark.asyncio
async def test_loop_runs_on_interval_until_stopped(storage):
    reaper = StorageReaper(storage, ActiveSessions(), interval_seconds=0.01)

    await reaper.start()
    for _ in range(100):
        if not any(storage.iterdir()):
            break
        await asyncio.sleep(0.01)
    await reaper.stop()

    assert list(storage.iterdir()) == []
    assert reaper._task is None


@pytest.mark.asyncio
async def test_loop_survives_failing_cycle(storage, monkeypatch):
    calls = []

    async def failing_cycle():
        calls.append(1)
        raise RuntimeError("unexpected")

    reaper = StorageReaper(storage, ActiveSessions(), interval_seconds=0.01)
    monkeypatch.setattr(reaper, "reap_once", failing_cycle)

    await reaper.start()
    for _ in range(100):
        if len(calls) >= 2:
            break
        await asyncio.sleep(0.01)
    await reaper.stop()

    assert len(calls) >= 2


def test_app_lifecycle_starts_reaper_and_closes_source(make_settings):
    source = FakeSource()
    app = create_app(make_settings(), content_source=source)

    with TestClient(app):
        assert app.state.reaper._running

    assert not app.state.reaper._running
    assert source.closed


class FailingEvictSource(FakeSource):
    async def evict(self, key):
        if key == "idle":
            raise RuntimeError("invalid torrent handle")
        await super().evict(key)


@pytest.mark.asyncio
async def test_failing_bundle_does_not_stop_the_cycle(storage):
    source = FailingEvictSource()
    reaper = StorageReaper(storage, ActiveSessions(), source)

    removed = await reaper.reap_once()

    assert removed == ["busy", "stray.part"]
    assert [p.name for p in storage.iterdir()] == ["idle"]
