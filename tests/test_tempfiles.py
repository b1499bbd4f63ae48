import time

import pytest

from speaktoai.tempfiles import TempFileManager, get_temp_file_manager


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    return TempFileManager(cleanup_timeout=60, clock=clock)


def test_add_file_tracks_path(manager, tmp_path):
    target = tmp_path / "a.wav"
    manager.add_file(target)
    assert target in manager
    assert str(target) in manager
    assert len(manager) == 1


def test_remove_file_with_delete_removes_from_disk(manager, tmp_path):
    target = tmp_path / "a.wav"
    target.write_bytes(b"data")
    manager.add_file(target)
    manager.remove_file(target, True)
    assert not target.exists()
    assert target not in manager


def test_remove_file_without_delete_keeps_file(manager, tmp_path):
    target = tmp_path / "a.wav"
    target.write_bytes(b"data")
    manager.add_file(target)
    manager.remove_file(target, False)
    assert target.exists()
    assert target not in manager


def test_remove_missing_file_untracks_quietly(manager, tmp_path):
    target = tmp_path / "missing.wav"
    manager.add_file(target)
    manager.remove_file(target, True)
    assert len(manager) == 0


def test_cleanup_old_files_removes_only_expired(manager, clock, tmp_path):
    old = tmp_path / "old.wav"
    new = tmp_path / "new.wav"
    old.write_bytes(b"old")
    new.write_bytes(b"new")
    manager.add_file(old)
    clock.now += 61
    manager.add_file(new)

    removed = manager.cleanup_old_files()

    assert removed == [str(old)]
    assert not old.exists()
    assert new.exists()
    assert old not in manager
    assert new in manager


def test_cleanup_keeps_file_exactly_at_timeout(manager, clock, tmp_path):
    target = tmp_path / "edge.wav"
    target.write_bytes(b"x")
    manager.add_file(target)
    clock.now += 60
    assert manager.cleanup_old_files() == []
    assert target.exists()


def test_cleanup_forgets_expired_file_missing_on_disk(manager, clock, tmp_path):
    target = tmp_path / "gone.wav"
    manager.add_file(target)
    clock.now += 120
    assert manager.cleanup_old_files() == [str(target)]
    assert len(manager) == 0


def test_background_cleanup_and_stop(clock, tmp_path):
    target = tmp_path / "bg.wav"
    target.write_bytes(b"x")
    background = TempFileManager(
        cleanup_timeout=1, check_interval=0.01, clock=clock, run_cleanup=True
    )
    try:
        assert background.running
        background.add_file(target)
        clock.now += 5
        deadline = time.monotonic() + 5
        while target.exists() and time.monotonic() < deadline:
            time.sleep(0.01)
        assert not target.exists()
    finally:
        background.stop()
    assert not background.running


def test_stop_without_thread_leaves_manager_stopped(manager):
    manager.stop()
    assert manager.running is False


def test_get_temp_file_manager_is_shared():
    first = get_temp_file_manager()
    second = get_temp_file_manager()
    assert first is second
    assert first.running