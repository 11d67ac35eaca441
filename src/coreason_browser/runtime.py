# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_browser

from abc import ABC, abstractmethod
from collections.abc import Iterable

from coreason_browser.models import ContainerSpec


class ContainerRuntime(ABC):
    """
    Container runtime capability used by the sandbox orchestrator.
    Follows the Strategy Pattern.

    Every method blocks the calling thread; the async orchestrator offloads
    them to worker threads. All calls are idempotent at the call sites the
    orchestrator uses them from.
    """

    @abstractmethod
    def ensure_images(self, images: Iterable[str]) -> None:
        """Pull each image that is not present locally.

        Raises:
            RuntimeOperationFailed: If a pull fails.
        """
        pass  # pragma: no cover

    @abstractmethod
    def ensure_network(self, name: str) -> None:
        """Create an isolated network unless one with this name exists.

        Raises:
            RuntimeOperationFailed: If creation fails.
        """
        pass  # pragma: no cover

    @abstractmethod
    def remove_network(self, name: str) -> None:
        """Remove the network if it exists. A missing network is not an error.

        Raises:
            RuntimeOperationFailed: If removal fails.
        """
        pass  # pragma: no cover

    @abstractmethod
    def launch(self, spec: ContainerSpec) -> None:
        """Create and start a container that removes itself once stopped.

        Raises:
            RuntimeOperationFailed: If creation or start fails.
        """
        pass  # pragma: no cover

    @abstractmethod
    def stop_container(self, name: str, grace_seconds: int = 30) -> None:
        """Stop a container gracefully. A missing container is not an error.

        Raises:
            RuntimeOperationFailed: If the stop request fails.
        """
        pass  # pragma: no cover
