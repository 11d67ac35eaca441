# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

from collections.abc import Iterable
from typing import TYPE_CHECKING

import docker
import requests
from docker.errors import APIError, DockerException, ImageNotFound, NotFound
from docker.models.networks import Network

from coreason_browser.exceptions import RuntimeOperationFailed
from coreason_browser.models import ContainerSpec
from coreason_browser.runtime import ContainerRuntime
from coreason_browser.utils.logger import get_logger

if TYPE_CHECKING:
    from loguru import Logger

# Extra seconds, beyond the stop grace period, allowed for auto-removal.
REMOVAL_SLACK = 10


class DockerRuntime(ContainerRuntime):
    """
    Docker-based implementation of the ContainerRuntime.
    """

    def __init__(self, client: docker.DockerClient | None = None, log: "Logger | None" = None):
        self._client = client
        self._log = log or get_logger("docker")

    @property
    def client(self) -> docker.DockerClient:
        """Docker client, connected from the environment on first use."""
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                raise RuntimeOperationFailed(f"Cannot connect to Docker: {e}") from e
        return self._client

    def ensure_images(self, images: Iterable[str]) -> None:
        for image in images:
            try:
                self.client.images.get(image)
                continue
            except ImageNotFound:
                pass
            except DockerException as e:
                raise RuntimeOperationFailed(f"Failed to inspect image {image}: {e}") from e

            self._log.debug(f"Pulling image {image}")
            try:
                self.client.images.pull(image)
            except DockerException as e:
                self._log.error(f"Failed to pull image {image}: {e}")
                raise RuntimeOperationFailed(f"Failed to pull image {image}: {e}") from e

    def _find_networks(self, name: str) -> list[Network]:
        # The name filter matches substrings, so compare exactly.
        try:
            return [n for n in self.client.networks.list(names=[name]) if n.name == name]
        except DockerException as e:
            raise RuntimeOperationFailed(f"Failed to list networks: {e}") from e

    def ensure_network(self, name: str) -> None:
        if self._find_networks(name):
            return

        self._log.debug(f"Creating network {name}")
        try:
            self.client.networks.create(name, driver="bridge")
        except APIError as e:
            if e.status_code == 409:
                return
            self._log.error(f"Failed to create network {name}: {e}")
            raise RuntimeOperationFailed(f"Failed to create network {name}: {e}") from e
        except DockerException as e:
            self._log.error(f"Failed to create network {name}: {e}")
            raise RuntimeOperationFailed(f"Failed to create network {name}: {e}") from e

    def remove_network(self, name: str) -> None:
        for network in self._find_networks(name):
            self._log.debug(f"Removing network {name}")
            try:
                network.remove()
            except NotFound:
                continue
            except DockerException as e:
                self._log.error(f"Failed to remove network {name}: {e}")
                raise RuntimeOperationFailed(f"Failed to remove network {name}: {e}") from e

    def launch(self, spec: ContainerSpec) -> None:
        self._log.debug(f"Starting container {spec.name} from {spec.image}")
        try:
            container = self.client.containers.create(
                spec.image,
                name=spec.name,
                detach=True,
                network=spec.network,
                auto_remove=True,
                ports={port: (spec.host_ip, host_port) for port, host_port in spec.ports.items()},
                volumes={host: {"bind": target, "mode": "rw"} for host, target in spec.binds.items()},
                environment=spec.environment,
                shm_size=spec.shm_size,
            )
        except DockerException as e:
            self._log.error(f"Failed to create container {spec.name}: {e}")
            raise RuntimeOperationFailed(f"Failed to create container {spec.name}: {e}") from e

        try:
            container.start()
        except DockerException as e:
            self._log.error(f"Failed to start container {spec.name}: {e}")
            # Auto-remove only applies to containers that ran.
            try:
                container.remove(force=True)
            except DockerException as cleanup_error:
                self._log.warning(f"Failed to remove unstarted container {spec.name}: {cleanup_error}")
            raise RuntimeOperationFailed(f"Failed to start container {spec.name}: {e}") from e

    def stop_container(self, name: str, grace_seconds: int = 30) -> None:
        try:
            container = self.client.containers.get(name)
        except NotFound:
            return
        except DockerException as e:
            raise RuntimeOperationFailed(f"Failed to inspect container {name}: {e}") from e

        self._log.debug(f"Stopping container '{name}'")
        try:
            container.stop(timeout=grace_seconds)
            # Wait for auto-removal so the network has no endpoints left.
            container.wait(condition="removed", timeout=grace_seconds + REMOVAL_SLACK)
        except NotFound:
            return
        except requests.exceptions.RequestException as e:
            self._log.error(f"Gave up waiting for container {name} to be removed: {e}")
            raise RuntimeOperationFailed(f"Gave up waiting for container {name} to be removed: {e}") from e
        except DockerException as e:
            self._log.error(f"Failed to stop container {name}: {e}")
            raise RuntimeOperationFailed(f"Failed to stop container {name}: {e}") from e
