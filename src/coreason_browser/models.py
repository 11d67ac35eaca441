# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class SandboxState(str, Enum):
    """Lifecycle of a browser sandbox session.

    ``STARTING`` moves straight to ``STOPPING`` when any start step fails.
    """

    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ContainerSpec(BaseModel):
    """Everything the runtime needs to create and start one container.

    Attributes:
        name: Container name, also its DNS alias on the network.
        image: Image reference.
        network: Network the container joins.
        ports: Container port (e.g. ``"4444/tcp"``) to host port.
        binds: Host path to container path, mounted read-write.
        environment: Environment variables.
        shm_size: Size of ``/dev/shm`` in bytes.
        host_ip: Host address published ports bind to.
    """

    name: str
    image: str
    network: str
    ports: dict[str, int] = Field(default_factory=dict)
    binds: dict[str, str] = Field(default_factory=dict)
    environment: dict[str, str] = Field(default_factory=dict)
    shm_size: int | None = None
    host_ip: str = "127.0.0.1"


class SandboxInfo(BaseModel):
    """Snapshot of a sandbox session for callers and the CLI."""

    name: str
    network: str
    state: SandboxState
    work_dir: Path
    control_port: int | None = None
    viewer_port: int | None = None
    webdriver_url: str | None = None
    profile_dir: Path | None = None
    video_path: Path | None = None
