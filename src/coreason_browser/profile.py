# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

from pathlib import Path
from typing import TYPE_CHECKING

from coreason_browser.exceptions import ResourceUnavailable
from coreason_browser.locking import FileLock
from coreason_browser.utils.logger import get_logger

if TYPE_CHECKING:
    from loguru import Logger

SENTINEL_NAME = ".chrome_data_dir.lock"


class ProfileDirectoryGuard:
    """Serializes sandboxes that share one persistent browser profile.

    Two Chrome processes writing the same user-data-dir corrupt it, so the
    directory is locked before any container mounts it read-write and stays
    locked until that container is gone.
    """

    def __init__(self, path: str | Path, log: "Logger | None" = None):
        self.path = Path(path)
        self.lock = FileLock(self.path / SENTINEL_NAME)
        self._log = log or get_logger("profile")

    @property
    def held(self) -> bool:
        return self.lock.held

    def guard(self) -> None:
        """Create the directory if needed and block until its lock is ours.

        Raises:
            ResourceUnavailable: If the directory cannot be created or locked.
        """
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceUnavailable(f"Cannot create profile directory {self.path}: {e}") from e

        if FileLock.probe(self.lock.path):
            self._log.info(f"Profile directory {self.path} is in use, waiting for it")
        self.lock.acquire()
        self._log.debug(f"Locked profile directory {self.path}")

    def release(self) -> None:
        self.lock.release()
