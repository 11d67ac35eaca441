# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

"""Host TCP port reservation shared by every sandbox on the machine.

A port is reserved by holding the :class:`FileLock` whose path encodes the
port number. Finding a port is only a check; :func:`reserve_port` turns the
check into a claim by locking and then re-probing under the lock. A process
outside this system can still bind the port after the re-probe. That window
is accepted: it is narrow, and Docker fails loudly on the conflicting bind,
which start-up teardown then cleans up.
"""

import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from coreason_browser.exceptions import NoPortAvailable
from coreason_browser.locking import FileLock
from coreason_browser.utils.logger import get_logger

if TYPE_CHECKING:
    from loguru import Logger

LOCK_PREFIX = ".selenium-docker-"
CONTROL_PORT_RANGE = (8100, 8150)
VIEWER_PORT_RANGE = (5900, 5950)


def port_lock_path(lock_dir: str | Path, port: int) -> Path:
    """Marker file that guards ``port``."""
    return Path(lock_dir) / f"{LOCK_PREFIX}{port}"


def is_port_listening(port: int, timeout: float = 1.0, host: str = "127.0.0.1") -> bool:
    """Whether something accepts TCP connections on ``host:port``.

    Only a refused connection counts as free. A timeout or any other socket
    error is treated as "in use" so the scan moves on.
    """
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except ConnectionRefusedError:
        return False
    except OSError:
        return True


def find_free_port(
    low: int,
    high: int,
    lock_dir: str | Path = "/tmp",
    probe_timeout: float = 1.0,
) -> int:
    """Return the first port in ``[low, high]`` that is unlocked and silent.

    Raises:
        NoPortAvailable: If every port is locked or listening.
    """
    for port in range(low, high + 1):
        if FileLock.probe(port_lock_path(lock_dir, port)):
            continue
        if not is_port_listening(port, timeout=probe_timeout):
            return port
    raise NoPortAvailable(low, high)


@dataclass
class ReservedPort:
    """A host port claimed by this process through its lock file."""

    port: int
    lock: FileLock = field(repr=False)

    def release(self) -> None:
        self.lock.release()


def reserve_port(
    low: int,
    high: int,
    lock_dir: str | Path = "/tmp",
    probe_timeout: float = 1.0,
    log: "Logger | None" = None,
) -> ReservedPort:
    """Find and lock a free port in ``[low, high]``.

    Contended locks are skipped rather than waited on. Liveness is checked
    again once the lock is held, so a port taken between the scan and the
    claim is let go and the scan continues.

    Raises:
        NoPortAvailable: If no port could be claimed.
        ResourceUnavailable: If ``lock_dir`` cannot hold lock files.
    """
    log = log or get_logger("ports")
    # No probe here: a failed non-blocking acquire must mean a real holder.
    for port in range(low, high + 1):
        if is_port_listening(port, timeout=probe_timeout):
            continue
        lock = FileLock(port_lock_path(lock_dir, port))
        if not lock.acquire(blocking=False):
            continue
        if is_port_listening(port, timeout=probe_timeout):
            log.debug(f"Port {port} was taken during reservation, continuing scan")
            lock.release()
            continue
        log.debug(f"Reserved port {port}")
        return ReservedPort(port=port, lock=lock)
    raise NoPortAvailable(low, high)
