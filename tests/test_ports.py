import multiprocessing
import socket
import threading
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from coreason_browser.exceptions import NoPortAvailable
from coreason_browser.locking import FileLock
from coreason_browser.ports import (
    ReservedPort,
    find_free_port,
    is_port_listening,
    port_lock_path,
    reserve_port,
)


def _reserve_and_hold(lock_dir: str, ports: Any, done: Any) -> None:
    reserved = reserve_port(8100, 8101, lock_dir)
    ports.put(reserved.port)
    done.wait(10)
    reserved.release()


def test_port_lock_path(tmp_path: Path) -> None:
    assert port_lock_path(tmp_path, 8100) == tmp_path / ".selenium-docker-8100"
    assert port_lock_path("/tmp", 5901) == Path("/tmp/.selenium-docker-5901")


def test_is_port_listening_detects_listener() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.bind(("127.0.0.1", 0))
        server.listen()
        port = server.getsockname()[1]

        assert is_port_listening(port) is True


def test_is_port_listening_refused_means_free() -> None:
    # Bound but not listening: connections are refused.
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

        assert is_port_listening(port) is False


def test_is_port_listening_timeout_means_in_use() -> None:
    with patch("coreason_browser.ports.socket.create_connection", side_effect=socket.timeout("timed out")):
        assert is_port_listening(8100, timeout=0.01) is True


def test_is_port_listening_other_error_means_in_use() -> None:
    with patch("coreason_browser.ports.socket.create_connection", side_effect=OSError("unreachable")):
        assert is_port_listening(8100) is True


def test_find_free_port_skips_locked_port(lock_dir: Path, silent_ports: Any) -> None:
    held = FileLock(port_lock_path(lock_dir, 8100))
    held.acquire()
    try:
        assert find_free_port(8100, 8101, lock_dir) == 8101
    finally:
        held.release()


def test_find_free_port_skips_listening_port(lock_dir: Path) -> None:
    with patch("coreason_browser.ports.is_port_listening", side_effect=lambda port, timeout: port == 8100):
        assert find_free_port(8100, 8101, lock_dir) == 8101


def test_find_free_port_ascending_and_does_not_claim(lock_dir: Path, silent_ports: Any) -> None:
    assert find_free_port(8100, 8105, lock_dir) == 8100
    assert find_free_port(8100, 8105, lock_dir) == 8100
    assert FileLock.probe(port_lock_path(lock_dir, 8100)) is False


def test_find_free_port_exhausted(lock_dir: Path) -> None:
    held = FileLock(port_lock_path(lock_dir, 8100))
    held.acquire()
    try:
        with patch("coreason_browser.ports.is_port_listening", side_effect=lambda port, timeout: port == 8101):
            with pytest.raises(NoPortAvailable, match="8100-8101"):
                find_free_port(8100, 8101, lock_dir)
    finally:
        held.release()


def test_reserve_port_holds_lock(lock_dir: Path, silent_ports: Any) -> None:
    reserved = reserve_port(8100, 8101, lock_dir)

    assert isinstance(reserved, ReservedPort)
    assert reserved.port == 8100
    assert FileLock.probe(port_lock_path(lock_dir, 8100)) is True

    reserved.release()
    reserved.release()
    assert FileLock.probe(port_lock_path(lock_dir, 8100)) is False


def test_second_reservation_gets_next_port(lock_dir: Path, silent_ports: Any) -> None:
    first = reserve_port(8100, 8101, lock_dir)
    second = reserve_port(8100, 8101, lock_dir)

    assert (first.port, second.port) == (8100, 8101)

    with pytest.raises(NoPortAvailable) as exc_info:
        reserve_port(8100, 8101, lock_dir)
    assert (exc_info.value.low, exc_info.value.high) == (8100, 8101)

    first.release()
    second.release()


def test_reserve_port_rechecks_under_lock(lock_dir: Path) -> None:
    # 8100 looks free during the scan but is listening once locked.
    answers = {8100: [False, True], 8101: [False, False]}

    def listening(port: int, timeout: float) -> bool:
        return answers[port].pop(0)

    with patch("coreason_browser.ports.is_port_listening", side_effect=listening):
        reserved = reserve_port(8100, 8101, lock_dir)

    assert reserved.port == 8101
    assert FileLock.probe(port_lock_path(lock_dir, 8100)) is False
    reserved.release()


def test_concurrent_reservations_are_exclusive(lock_dir: Path, silent_ports: Any) -> None:
    results: list[ReservedPort] = []
    barrier = threading.Barrier(4)
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        reserved = reserve_port(8100, 8103, lock_dir)
        with results_lock:
            results.append(reserved)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    assert sorted(r.port for r in results) == [8100, 8101, 8102, 8103]
    for reserved in results:
        reserved.release()


def test_reservation_excludes_other_process(lock_dir: Path, silent_ports: Any) -> None:
    ctx = multiprocessing.get_context("fork")
    ports = ctx.Queue()
    done = ctx.Event()
    child = ctx.Process(target=_reserve_and_hold, args=(str(lock_dir), ports, done))
    child.start()
    try:
        child_port = ports.get(timeout=10)
        reserved = reserve_port(8100, 8101, lock_dir)
        assert reserved.port != child_port
        reserved.release()
    finally:
        done.set()
        child.join(10)


def test_reserve_port_claims_without_probing(lock_dir: Path, silent_ports: Any) -> None:
    with patch.object(FileLock, "probe", side_effect=AssertionError("lock state checked before claiming")):
        reserved = reserve_port(8100, 8101, lock_dir)

    assert reserved.port == 8100
    reserved.release()
