# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser


class BrowserSandboxError(RuntimeError):
    """Base class for all browser sandbox failures."""


class ResourceUnavailable(BrowserSandboxError):
    """A lock file or directory on the host cannot be used."""


class NoPortAvailable(BrowserSandboxError):
    """Every port in the requested range is locked or already listening."""

    def __init__(self, low: int, high: int):
        super().__init__(f"No free port in range {low}-{high}")
        self.low = low
        self.high = high


class StartupTimeout(BrowserSandboxError):
    """The WebDriver endpoint never became ready."""

    def __init__(self, port: int, timeout: float, attempts: int):
        super().__init__(f"WebDriver on port {port} not ready after {attempts} attempts ({timeout}s)")
        self.port = port
        self.timeout = timeout
        self.attempts = attempts


class RuntimeOperationFailed(BrowserSandboxError):
    """A container or network call failed for a reason other than being in the desired state already."""


class ArtifactMissing(BrowserSandboxError):
    """The recording file was expected at teardown but does not exist."""
