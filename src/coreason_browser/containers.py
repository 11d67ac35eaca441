# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

"""Container wiring for the Selenium browser and its screen recorder."""

from pathlib import Path

from coreason_browser.models import ContainerSpec

WEBDRIVER_PORT = "4444/tcp"
VNC_PORT = "5900/tcp"
CHROME_DATA_DIR = "/tmp/chrome-data-dir"
VIDEO_DIR = "/videos"
VIDEO_FILE = "video.mp4"
DEFAULT_SHM_SIZE = 2 * 1024 * 1024 * 1024


def recorder_name(name: str) -> str:
    return f"{name}-video"


def primary_spec(
    name: str,
    image: str,
    control_port: int,
    viewer_port: int,
    profile_dir: Path,
    recording: bool = False,
    shm_size: int = DEFAULT_SHM_SIZE,
) -> ContainerSpec:
    """Browser+driver container published on the reserved host ports.

    The container is named after the session and joins the session network,
    which gives the recorder a stable alias to find the display on.
    """
    environment = {"VIDEO": "true"} if recording else {}
    return ContainerSpec(
        name=name,
        image=image,
        network=name,
        ports={WEBDRIVER_PORT: control_port, VNC_PORT: viewer_port},
        binds={str(profile_dir): CHROME_DATA_DIR},
        environment=environment,
        shm_size=shm_size,
    )


def recorder_spec(name: str, image: str, video_dir: Path) -> ContainerSpec:
    """Recorder container that captures the primary's display into ``video_dir``."""
    return ContainerSpec(
        name=recorder_name(name),
        image=image,
        network=name,
        binds={str(video_dir): VIDEO_DIR},
        environment={"DISPLAY_CONTAINER_NAME": name, "FILE_NAME": VIDEO_FILE},
    )
