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

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from coreason_browser.containers import DEFAULT_SHM_SIZE
from coreason_browser.ports import CONTROL_PORT_RANGE, VIEWER_PORT_RANGE


class BrowserSandboxConfig(BaseSettings):
    """
    Configuration for a browser sandbox session.
    """

    selenium_image: str = "selenium/standalone-chrome:4.8.3"
    video_image: str = "selenium/video:ffmpeg-4.3.1-20220726"

    # Persistent Chrome profile shared between sessions; None uses a throwaway one
    chrome_data_dir: Path | None = None
    # Where the finished recording is copied; None disables recording
    video_path: Path | None = None

    lock_dir: Path = Path("/tmp")
    work_root: Path = Path("/tmp")

    control_port_range: tuple[int, int] = CONTROL_PORT_RANGE
    viewer_port_range: tuple[int, int] = VIEWER_PORT_RANGE
    probe_timeout: float = 1.0

    startup_timeout: float = 60.0
    poll_interval: float = 0.5
    stop_timeout: int = 30
    shm_size: int = DEFAULT_SHM_SIZE

    model_config = SettingsConfigDict(
        env_prefix="COREASON_BROWSER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("control_port_range", "viewer_port_range")
    @classmethod
    def _check_range(cls, value: tuple[int, int]) -> tuple[int, int]:
        low, high = value
        if not 1 <= low <= high <= 65535:
            raise ValueError(f"Invalid port range {low}-{high}")
        return value
