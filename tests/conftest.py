from collections.abc import Iterable
from pathlib import Path
from typing import Any, Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from coreason_browser.config import BrowserSandboxConfig
from coreason_browser.exceptions import RuntimeOperationFailed
from coreason_browser.models import ContainerSpec
from coreason_browser.readiness import ReadinessGate
from coreason_browser.runtime import ContainerRuntime


class FakeRuntime(ContainerRuntime):
    """In-memory container runtime that tracks what is alive and can be told to fail.

    ``fail_on`` names an operation: ``ensure_images``, ``ensure_network``,
    ``remove_network``, ``launch_primary``, ``launch_recorder``,
    ``stop_primary`` or ``stop_recorder``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.specs: list[ContainerSpec] = []
        self.containers: set[str] = set()
        self.networks: set[str] = set()
        self.fail_on: set[str] = set()

    @staticmethod
    def _role(name: str) -> str:
        return "recorder" if name.endswith("-video") else "primary"

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise RuntimeOperationFailed(f"{operation} failed")

    def ensure_images(self, images: Iterable[str]) -> None:
        images = list(images)
        self.calls.append(("ensure_images", ",".join(images)))
        self._check("ensure_images")

    def ensure_network(self, name: str) -> None:
        self.calls.append(("ensure_network", name))
        self._check("ensure_network")
        self.networks.add(name)

    def remove_network(self, name: str) -> None:
        self.calls.append(("remove_network", name))
        self._check("remove_network")
        self.networks.discard(name)

    def launch(self, spec: ContainerSpec) -> None:
        role = self._role(spec.name)
        self.calls.append((f"launch_{role}", spec.name))
        self.specs.append(spec)
        self._check(f"launch_{role}")
        self.containers.add(spec.name)

    def stop_container(self, name: str, grace_seconds: int = 30) -> None:
        role = self._role(name)
        self.calls.append((f"stop_{role}", name))
        self._check(f"stop_{role}")
        self.containers.discard(name)


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def mock_driver() -> MagicMock:
    return MagicMock(name="WebDriver")


@pytest.fixture
def mock_gate(mock_driver: MagicMock) -> MagicMock:
    gate = MagicMock(spec=ReadinessGate)
    gate.await_ready = AsyncMock(return_value=mock_driver)
    gate.webdriver_url.side_effect = lambda port: f"http://127.0.0.1:{port}/wd/hub"
    return gate


@pytest.fixture
def lock_dir(tmp_path: Path) -> Path:
    path = tmp_path / "locks"
    path.mkdir()
    return path


@pytest.fixture
def sandbox_config(tmp_path: Path, lock_dir: Path) -> BrowserSandboxConfig:
    return BrowserSandboxConfig(
        work_root=tmp_path / "work",
        lock_dir=lock_dir,
        control_port_range=(8100, 8101),
        viewer_port_range=(5900, 5901),
    )


@pytest.fixture
def silent_ports() -> Generator[Any, None, None]:
    """Make every loopback port look free so tests do not depend on the host."""
    with patch("coreason_browser.ports.is_port_listening", return_value=False) as mock:
        yield mock
