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
from typing import Any

import anyio
import click

from coreason_browser import __version__
from coreason_browser.config import BrowserSandboxConfig
from coreason_browser.sandbox import BrowserSandboxAsync
from coreason_browser.utils.logger import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="coreason-browser")
def main() -> None:
    """Ephemeral Selenium browser sandboxes on Docker."""


async def hold_open(sandbox: BrowserSandboxAsync) -> None:
    """Start the sandbox, print how to reach it, and wait to be interrupted."""
    async with sandbox:
        info = sandbox.info
        click.echo(f"Sandbox:   {info.name}")
        click.echo(f"WebDriver: {info.webdriver_url}")
        click.echo(f"VNC port:  {info.viewer_port}")
        click.echo("Press Ctrl+C to stop.")
        await anyio.sleep_forever()


@main.command()
@click.option("--chrome-data-dir", type=click.Path(file_okay=False, path_type=Path), help="Persistent profile.")
@click.option("--video-path", type=click.Path(dir_okay=False, path_type=Path), help="Save a recording here.")
@click.option("--selenium-image", help="Browser+driver image.")
@click.option("--video-image", help="Recorder image.")
@click.option("--log-dir", type=click.Path(file_okay=False, path_type=Path), default=Path("logs"), show_default=True)
@click.option("--log-level", default="INFO", show_default=True)
def up(
    chrome_data_dir: Path | None,
    video_path: Path | None,
    selenium_image: str | None,
    video_image: str | None,
    log_dir: Path,
    log_level: str,
) -> None:
    """Run a sandbox until interrupted, e.g. to watch it over VNC."""
    configure_logging(log_dir, level=log_level)

    options: dict[str, Any] = {
        "chrome_data_dir": chrome_data_dir,
        "video_path": video_path,
        "selenium_image": selenium_image,
        "video_image": video_image,
    }
    config = BrowserSandboxConfig(**{key: value for key, value in options.items() if value is not None})

    try:
        anyio.run(hold_open, BrowserSandboxAsync(config))
    except KeyboardInterrupt:
        click.echo("Sandbox stopped.")


if __name__ == "__main__":  # pragma: no cover
    main()
