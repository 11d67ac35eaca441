# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

import asyncio
import socket
import threading
import time
from collections.abc import Callable
from http.client import RemoteDisconnected
from typing import TYPE_CHECKING, Any

import anyio
from pydantic import BaseModel, Field
from selenium import webdriver
from selenium.common.exceptions import SessionNotCreatedException, WebDriverException
from selenium.webdriver.remote.webdriver import WebDriver
from urllib3.exceptions import MaxRetryError, NewConnectionError, ProtocolError

from coreason_browser.containers import CHROME_DATA_DIR
from coreason_browser.exceptions import StartupTimeout
from coreason_browser.utils.logger import get_logger

if TYPE_CHECKING:
    from loguru import Logger

DriverFactory = Callable[[str], WebDriver]
CONNECT_TIMEOUT = 1.0

# Docker's port proxy accepts connections before the grid listens and then
# hangs up, so a dropped stream is as expected as a refused connection.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionRefusedError,
    ConnectionResetError,
    EOFError,
    RemoteDisconnected,
    ProtocolError,
    SessionNotCreatedException,
)


class RetryPolicy(BaseModel):
    """Fixed-backoff retry bounded by wall-clock time and, optionally, attempts.

    Attributes:
        timeout: Overall budget in seconds.
        interval: Pause between attempts in seconds.
        max_attempts: Upper bound on attempts; ``None`` means time-bound only.
    """

    timeout: float = Field(default=60.0, gt=0)
    interval: float = Field(default=0.5, ge=0)
    max_attempts: int | None = Field(default=None, ge=1)


def chrome_driver(url: str) -> WebDriver:
    """Open a Chrome session on the remote grid using the mounted profile."""
    options = webdriver.ChromeOptions()
    options.add_argument("--no-first-run")
    options.add_argument(f"--user-data-dir={CHROME_DATA_DIR}")
    return webdriver.Remote(command_executor=url, options=options)


def is_transient(error: BaseException) -> bool:
    """Whether a readiness attempt failure means "not up yet" rather than "broken"."""
    if isinstance(error, TRANSIENT_ERRORS):
        return True
    if isinstance(error, MaxRetryError):
        return isinstance(error.reason, (NewConnectionError, ProtocolError))
    if isinstance(error, WebDriverException):
        return "unknown error" in (error.msg or "").lower()
    return False


class ReadinessGate:
    """Polls a WebDriver endpoint until it hands out a session.

    Each attempt opens a plain TCP connection to the control port and, when
    that succeeds, creates the remote driver. Creating the driver is the
    handshake: it only succeeds once the grid has registered its browser node.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        driver_factory: DriverFactory = chrome_driver,
        host: str = "127.0.0.1",
        log: "Logger | None" = None,
    ):
        self.policy = policy or RetryPolicy()
        self.driver_factory = driver_factory
        self.host = host
        self._log = log or get_logger("readiness")

    def webdriver_url(self, port: int) -> str:
        return f"http://{self.host}:{port}/wd/hub"

    def _attempt(self, port: int) -> WebDriver | None:
        """One readiness attempt. Returns None on a transient failure."""
        try:
            with socket.create_connection((self.host, port), timeout=CONNECT_TIMEOUT):
                pass
            return self.driver_factory(self.webdriver_url(port))
        except Exception as e:
            if is_transient(e):
                self._log.debug(f"WebDriver on port {port} not ready: {type(e).__name__}")
                return None
            raise

    def _quit_late(self, driver: WebDriver, port: int) -> None:
        self._log.debug(f"Quitting WebDriver on port {port} that became ready too late")
        try:
            driver.quit()
        except Exception as e:
            self._log.warning(f"Failed to quit late WebDriver on port {port}: {e}")

    async def _bounded_attempt(self, port: int, remaining: float) -> WebDriver | None:
        """Run one attempt for at most ``remaining`` seconds.

        The worker thread cannot be interrupted, so a driver it creates after
        the attempt was abandoned is quit instead of being returned.
        """
        lock = threading.Lock()
        state: dict[str, Any] = {"abandoned": False, "driver": None}

        def attempt() -> WebDriver | None:
            driver = self._attempt(port)
            with lock:
                if not state["abandoned"]:
                    state["driver"] = driver
                    return driver
            if driver is not None:
                self._quit_late(driver, port)
            return None

        driver = None
        with anyio.move_on_after(remaining) as scope:
            driver = await asyncio.to_thread(attempt)
        if not scope.cancelled_caught:
            return driver

        with lock:
            state["abandoned"] = True
            late = state["driver"]
        if late is not None:
            await asyncio.to_thread(self._quit_late, late, port)
        return None

    async def await_ready(self, port: int) -> WebDriver:
        """Wait until the endpoint on ``port`` yields a driver.

        Every attempt, including a slow session handshake, is bounded by what
        is left of the policy timeout.

        Raises:
            StartupTimeout: If the policy runs out before the endpoint is ready.
            Exception: Any non-transient error from the handshake, unchanged.
        """
        policy = self.policy
        deadline = time.monotonic() + policy.timeout
        attempts = 0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            attempts += 1
            driver = await self._bounded_attempt(port, remaining)
            if driver is not None:
                self._log.debug(f"WebDriver ready on port {port} after {attempts} attempt(s)")
                return driver

            if policy.max_attempts is not None and attempts >= policy.max_attempts:
                break
            if time.monotonic() + policy.interval >= deadline:
                break
            await asyncio.sleep(policy.interval)

        self._log.error(f"WebDriver on port {port} did not become ready")
        raise StartupTimeout(port, policy.timeout, attempts)
