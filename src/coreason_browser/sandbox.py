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
import inspect
import os
import secrets
import shutil
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import anyio
from selenium.webdriver.remote.webdriver import WebDriver

from coreason_browser.config import BrowserSandboxConfig
from coreason_browser.containers import VIDEO_FILE, primary_spec, recorder_name, recorder_spec
from coreason_browser.exceptions import ArtifactMissing
from coreason_browser.factory import SandboxFactory
from coreason_browser.models import SandboxInfo, SandboxState
from coreason_browser.ports import ReservedPort, reserve_port
from coreason_browser.profile import ProfileDirectoryGuard
from coreason_browser.readiness import ReadinessGate
from coreason_browser.runtime import ContainerRuntime
from coreason_browser.utils.logger import get_logger

if TYPE_CHECKING:
    from loguru import Logger

T = TypeVar("T")


def generate_session_id() -> str:
    """Random short identifier for a session, its network and its containers."""
    return secrets.token_hex(6)


def recording_destination(video_path: Path) -> Path:
    """Recordings are always MP4; append the extension when it is missing."""
    if video_path.suffix == ".mp4":
        return video_path
    return video_path.with_name(f"{video_path.name}.mp4")


class BrowserSandboxAsync:
    """Async-native browser sandbox session (The Core).

    Owns every host resource of one session: the port locks, the optional
    profile lock, the network, the containers and the working directory.
    ``start`` acquires them in a fixed order and ``stop`` releases them in the
    reverse order, so a lock is never released while the container it protects
    is still running. A failed ``start`` tears down whatever it acquired before
    re-raising.
    """

    def __init__(
        self,
        config: BrowserSandboxConfig | None = None,
        runtime: ContainerRuntime | None = None,
        gate: ReadinessGate | None = None,
        log: "Logger | None" = None,
    ):
        """Initializes the session. Nothing is acquired until ``start``.

        Args:
            config: Configuration for the sandbox.
            runtime: Container runtime; Docker by default.
            gate: Readiness gate; built from ``config`` by default.
            log: Logger to report through; the shared loguru logger by default.
        """
        self.config = config or BrowserSandboxConfig()
        self.runtime = runtime or SandboxFactory.get_runtime(self.config)
        self.gate = gate or SandboxFactory.get_gate(self.config)
        self.name = f"selenium-{generate_session_id()}"
        self.work_dir = self.config.work_root / self.name
        self.state = SandboxState.CREATED

        self.control_port: ReservedPort | None = None
        self.viewer_port: ReservedPort | None = None
        self.profile_guard: ProfileDirectoryGuard | None = None
        self._network_requested = False
        self._containers: list[str] = []
        self._driver: WebDriver | None = None
        self._log = (log or get_logger("sandbox")).bind(sandbox=self.name)

    @property
    def recording(self) -> bool:
        return self.config.video_path is not None

    @property
    def profile_dir(self) -> Path:
        if self.config.chrome_data_dir is not None:
            return self.config.chrome_data_dir
        return self.work_dir / "chrome-data-dir"

    @property
    def video_dir(self) -> Path:
        return self.work_dir / "video"

    @property
    def driver(self) -> WebDriver:
        """The remote WebDriver session, created once by ``start``."""
        if self._driver is None:
            raise RuntimeError("Sandbox not started")
        return self._driver

    @property
    def info(self) -> SandboxInfo:
        control = self.control_port.port if self.control_port else None
        return SandboxInfo(
            name=self.name,
            network=self.name,
            state=self.state,
            work_dir=self.work_dir,
            control_port=control,
            viewer_port=self.viewer_port.port if self.viewer_port else None,
            webdriver_url=self.gate.webdriver_url(control) if control else None,
            profile_dir=self.config.chrome_data_dir,
            video_path=recording_destination(self.config.video_path) if self.config.video_path else None,
        )

    async def start(self) -> WebDriver:
        """Provision the sandbox and return a ready WebDriver.

        Raises:
            RuntimeError: If the session was already started.
            BrowserSandboxError: If a step fails. Everything acquired so far
                has been released by the time it propagates.
        """
        if self.state is not SandboxState.CREATED:
            raise RuntimeError(f"Sandbox {self.name} is {self.state.value}, it cannot be started again")

        self.state = SandboxState.STARTING
        self._log.info(f"Starting browser sandbox {self.name}")
        try:
            await self._provision()
        except BaseException as e:
            self._log.error(f"Failed to start browser sandbox {self.name}: {e!r}")
            self.state = SandboxState.STOPPING
            try:
                await self._teardown(collect_recording=False)
            except Exception as teardown_error:
                self._log.error(f"Cleanup after failed start of {self.name} was incomplete: {teardown_error}")
            finally:
                self.state = SandboxState.STOPPED
            raise

        self.state = SandboxState.RUNNING
        info = self.info
        self._log.info(
            f"Browser sandbox {self.name} ready: webdriver={info.webdriver_url} vnc_port={info.viewer_port}"
        )
        return self.driver

    async def _provision(self) -> None:
        config = self.config
        await asyncio.to_thread(self._prepare_work_dir)

        images = [config.selenium_image]
        if self.recording:
            images.append(config.video_image)
        await asyncio.to_thread(self.runtime.ensure_images, images)

        if config.chrome_data_dir is not None:
            self.profile_guard = ProfileDirectoryGuard(config.chrome_data_dir, log=self._log)
            await asyncio.to_thread(self.profile_guard.guard)

        self.control_port = await asyncio.to_thread(
            reserve_port, *config.control_port_range, config.lock_dir, config.probe_timeout, self._log
        )
        self.viewer_port = await asyncio.to_thread(
            reserve_port, *config.viewer_port_range, config.lock_dir, config.probe_timeout, self._log
        )

        self._network_requested = True
        await asyncio.to_thread(self.runtime.ensure_network, self.name)

        self._log.debug(f"Starting selenium, container name: {self.name}, vnc port: {self.viewer_port.port}")
        self._containers.append(self.name)
        await asyncio.to_thread(
            self.runtime.launch,
            primary_spec(
                self.name,
                config.selenium_image,
                self.control_port.port,
                self.viewer_port.port,
                self.profile_dir,
                recording=self.recording,
                shm_size=config.shm_size,
            ),
        )

        if self.recording:
            self._log.debug(f"Starting video, container name: {recorder_name(self.name)}")
            self._containers.append(recorder_name(self.name))
            await asyncio.to_thread(
                self.runtime.launch, recorder_spec(self.name, config.video_image, self.video_dir)
            )

        self._driver = await self.gate.await_ready(self.control_port.port)

    def _prepare_work_dir(self) -> None:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        mounts = [self.video_dir] if self.recording else []
        if self.config.chrome_data_dir is None:
            mounts.append(self.profile_dir)
        for path in mounts:
            path.mkdir(exist_ok=True)
            # The browser and recorder run as their own users inside the containers.
            os.chmod(path, 0o777)

    async def stop(self) -> None:
        """Tear the sandbox down and deliver the recording.

        A no-op for a session that was never started or is already stopped.

        Raises:
            Exception: The first teardown failure, after every step was tried.
        """
        if self.state is not SandboxState.RUNNING:
            return

        self.state = SandboxState.STOPPING
        self._log.info(f"Stopping browser sandbox {self.name}")
        try:
            await self._teardown(collect_recording=True)
        finally:
            self.state = SandboxState.STOPPED

    async def _teardown(self, collect_recording: bool) -> None:
        errors: list[Exception] = []

        # Cancellation of the caller must not cut teardown short.
        with anyio.CancelScope(shield=True):
            if self._driver is not None:
                driver, self._driver = self._driver, None
                await self._attempt(errors, "quit driver", driver.quit)

            # Recorder first so it finalizes the video while the display still exists.
            for name in reversed(self._containers):
                await self._attempt(errors, f"stop {name}", self.runtime.stop_container, name, self.config.stop_timeout)
            self._containers.clear()

            if self._network_requested:
                await self._attempt(errors, "remove network", self.runtime.remove_network, self.name)
                self._network_requested = False

            for reserved in (self.viewer_port, self.control_port):
                if reserved is not None:
                    await self._attempt(errors, f"release port {reserved.port}", reserved.release)
            if self.profile_guard is not None:
                await self._attempt(errors, "release profile directory", self.profile_guard.release)

            if collect_recording and self.config.video_path is not None:
                await self._attempt(errors, "copy recording", self._copy_recording, self.config.video_path)

            await asyncio.to_thread(self._remove_work_dir)

        if errors:
            raise errors[0]

    async def _attempt(self, errors: list[Exception], step: str, func: Callable[..., Any], *args: Any) -> None:
        try:
            await asyncio.to_thread(func, *args)
        except Exception as e:
            self._log.warning(f"Teardown step '{step}' failed for {self.name}: {e}")
            errors.append(e)

    def _copy_recording(self, video_path: Path) -> None:
        source = self.video_dir / VIDEO_FILE
        if not source.is_file():
            raise ArtifactMissing(f"Recording not found at {source}")
        target = recording_destination(video_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        self._log.debug(f"Recorded video saved to '{target}'")

    def _remove_work_dir(self) -> None:
        # Files written by container users may not be removable; that never fails teardown.
        def _warn(func: Callable[..., Any], path: str, exc: BaseException) -> None:
            self._log.warning(f"Could not remove {path}: {exc}")

        if self.work_dir.exists():
            shutil.rmtree(self.work_dir, onexc=_warn)

    async def run(self, callback: Callable[[WebDriver], Awaitable[T] | T]) -> T:
        """Start, hand the driver to ``callback``, and always stop.

        ``callback`` may be a plain function or a coroutine function. ``stop``
        runs on return, on error and on cancellation.
        """
        async with self as driver:
            result = callback(driver)
            if inspect.isawaitable(result):
                result = await result
            return result  # type: ignore[return-value]

    async def __aenter__(self) -> WebDriver:
        """Starts the sandbox environment."""
        return await self.start()

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Stops the sandbox environment and cleans up resources."""
        try:
            await self.stop()
        except Exception as e:
            if exc_val is None:
                raise
            # Keep the caller's error; the teardown failure is only reported.
            self._log.error(f"Teardown of {self.name} failed: {e}")


class BrowserSandbox:
    """Sync Facade for BrowserSandboxAsync (The Facade).

    Wraps BrowserSandboxAsync and executes methods via anyio.run.
    """

    def __init__(
        self,
        config: BrowserSandboxConfig | None = None,
        runtime: ContainerRuntime | None = None,
        gate: ReadinessGate | None = None,
        log: "Logger | None" = None,
    ):
        self._async = BrowserSandboxAsync(config, runtime, gate, log)

    @property
    def name(self) -> str:
        return self._async.name

    @property
    def state(self) -> SandboxState:
        return self._async.state

    @property
    def driver(self) -> WebDriver:
        return self._async.driver

    @property
    def info(self) -> SandboxInfo:
        return self._async.info

    def start(self) -> WebDriver:
        return anyio.run(self._async.start)

    def stop(self) -> None:
        anyio.run(self._async.stop)

    def run(self, callback: Callable[[WebDriver], T]) -> T:
        """Start, call ``callback`` with the driver, and always stop."""
        with self as driver:
            return callback(driver)

    def __enter__(self) -> WebDriver:
        """Context entry point."""
        return self.start()

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context exit point."""
        anyio.run(self._async.__aexit__, exc_type, exc_val, exc_tb)
