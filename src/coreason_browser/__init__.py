# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

"""
coreason-browser
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import BrowserSandboxConfig
from .exceptions import (
    ArtifactMissing,
    BrowserSandboxError,
    NoPortAvailable,
    ResourceUnavailable,
    RuntimeOperationFailed,
    StartupTimeout,
)
from .locking import FileLock
from .models import ContainerSpec, SandboxInfo, SandboxState
from .ports import ReservedPort, find_free_port, reserve_port
from .profile import ProfileDirectoryGuard
from .readiness import ReadinessGate, RetryPolicy
from .runtime import ContainerRuntime
from .runtimes.docker import DockerRuntime
from .sandbox import BrowserSandbox, BrowserSandboxAsync

__all__ = [
    "BrowserSandbox",
    "BrowserSandboxAsync",
    "BrowserSandboxConfig",
    "ContainerRuntime",
    "DockerRuntime",
    "ReadinessGate",
    "RetryPolicy",
    "FileLock",
    "ProfileDirectoryGuard",
    "ReservedPort",
    "find_free_port",
    "reserve_port",
    "ContainerSpec",
    "SandboxInfo",
    "SandboxState",
    "BrowserSandboxError",
    "ResourceUnavailable",
    "NoPortAvailable",
    "StartupTimeout",
    "RuntimeOperationFailed",
    "ArtifactMissing",
]
