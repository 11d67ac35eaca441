# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

import fcntl
import os
from pathlib import Path
from types import TracebackType

from coreason_browser.exceptions import ResourceUnavailable


class FileLock:
    """Advisory, host-local exclusive lock keyed by a filesystem path.

    Backed by ``flock(2)`` on a marker file, so mutual exclusion holds between
    unrelated processes as well as between handles inside one process. The
    marker file is created on first acquire and is left in place on release so
    it stays a stable rendezvous point for the next contender.

    A handle belongs to a single owner (one sandbox session) and must not be
    shared between sessions.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        """Whether this handle currently owns the lock."""
        return self._fd is not None

    def acquire(self, blocking: bool = True) -> bool:
        """Take the exclusive lock.

        Args:
            blocking: Wait (without limit) for the current holder to let go.
                When False, return immediately if another holder has it.

        Returns:
            bool: True once the lock is held, False only for a contended
            non-blocking attempt.

        Raises:
            ResourceUnavailable: If the marker file cannot be created or opened.
        """
        if self._fd is not None:
            return True

        try:
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o666)
        except OSError as e:
            raise ResourceUnavailable(f"Cannot open lock file {self.path}: {e}") from e

        flags = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        try:
            fcntl.flock(fd, flags)
        except BlockingIOError:
            os.close(fd)
            return False
        except OSError as e:
            os.close(fd)
            raise ResourceUnavailable(f"Cannot lock {self.path}: {e}") from e

        self._fd = fd
        return True

    def release(self) -> None:
        """Drop the lock. Safe to call any number of times."""
        fd, self._fd = self._fd, None
        if fd is None:
            return
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    @staticmethod
    def probe(path: str | Path) -> bool:
        """Report whether any holder has the lock at ``path``.

        Never blocks and never creates the marker file. The check briefly
        takes and drops the lock on a private descriptor when it is free.
        While it does, a non-blocking ``acquire`` from another handle fails as
        if the lock were held. :func:`coreason_browser.ports.reserve_port`
        therefore claims ports without probing them first.
        """
        try:
            fd = os.open(path, os.O_RDONLY)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ResourceUnavailable(f"Cannot open lock file {path}: {e}") from e

        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                return True
            fcntl.flock(fd, fcntl.LOCK_UN)
            return False
        finally:
            os.close(fd)

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "held" if self.held else "free"
        return f"FileLock({str(self.path)!r}, {state})"
