import threading
from pathlib import Path

import pytest

from coreason_browser.exceptions import ResourceUnavailable
from coreason_browser.locking import FileLock
from coreason_browser.profile import SENTINEL_NAME, ProfileDirectoryGuard


def test_guard_creates_directory_and_locks(tmp_path: Path) -> None:
    profile = tmp_path / "profiles" / "chrome"
    guard = ProfileDirectoryGuard(profile)

    guard.guard()

    assert profile.is_dir()
    assert guard.held
    assert FileLock.probe(profile / SENTINEL_NAME) is True

    guard.release()
    assert FileLock.probe(profile / SENTINEL_NAME) is False
    assert profile.is_dir()


def test_release_is_idempotent(tmp_path: Path) -> None:
    guard = ProfileDirectoryGuard(tmp_path / "chrome")
    guard.release()
    guard.guard()
    guard.release()
    guard.release()
    assert not guard.held


def test_shared_profile_is_serialized(tmp_path: Path) -> None:
    profile = tmp_path / "chrome"
    first = ProfileDirectoryGuard(profile)
    first.guard()
    second_locked = threading.Event()
    second = ProfileDirectoryGuard(profile)

    thread = threading.Thread(target=lambda: (second.guard(), second_locked.set()))
    thread.start()

    assert not second_locked.wait(0.2)
    first.release()
    assert second_locked.wait(5)
    thread.join(5)
    second.release()


def test_unusable_directory_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    with pytest.raises(ResourceUnavailable, match="Cannot create profile directory"):
        ProfileDirectoryGuard(blocker / "chrome").guard()
