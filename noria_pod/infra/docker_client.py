# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# DOCKER PROVIDER
# -----------------------------------------------------------------------------
# Responsibility: A thin wrapper around the Docker SDK with connection
# validation and operator-facing error reporting.
#
# This is part of the Infrastructure layer - the Image Builder asks it for a
# live client and never deals with DOCKER_HOST or engine availability itself.
# An unreachable engine is reported once and not retried.
# -----------------------------------------------------------------------------

import os

import docker
from docker import DockerClient
from docker.errors import DockerException
from rich.console import Console
from rich.panel import Panel

console = Console(stderr=True)


class DockerProviderError(Exception):
    """Raised when the Docker engine cannot be reached."""

    pass


class DockerProvider:
    """
    Docker SDK wrapper used by the Image Builder.

    Connects through DOCKER_HOST when it is set (e.g., a socket proxy),
    otherwise through the local environment defaults.
    """

    def __init__(self, docker_host: str | None = None) -> None:
        """
        Initialize the Docker provider.

        Args:
            docker_host: Engine URL. Falls back to the DOCKER_HOST variable.
        """
        self._docker_host = docker_host or os.getenv("DOCKER_HOST")
        self._client: DockerClient | None = None

        self._connect()

    def _connect(self) -> None:
        """
        Establish connection to the Docker daemon.

        Raises:
            DockerProviderError: If the engine does not answer a ping.
        """
        try:
            if self._docker_host:
                self._client = docker.DockerClient(base_url=self._docker_host)
            else:
                self._client = docker.from_env()
            self._client.ping()
            target = self._docker_host or "local engine"
            console.print(f"[green][DOCKER] Connected to {target}[/green]")
        except DockerException as e:
            self._client = None
            console.print(
                Panel(
                    "[bold red]Docker Engine Unavailable[/bold red]\n\n"
                    f"{e}\n\n"
                    "1. Start the Docker engine (or check DOCKER_HOST)\n"
                    "2. Re-run the build",
                    title="BUILD HALTED",
                    border_style="red",
                )
            )
            raise DockerProviderError(f"Docker engine is not available: {e}") from e

    def get_client(self) -> DockerClient:
        """
        Get the Docker client, verifying the connection is still active.

        Returns:
            Active DockerClient instance.

        Raises:
            DockerProviderError: If the connection was lost.
        """
        if self._client is None:
            raise DockerProviderError("Docker client not initialized")

        try:
            self._client.ping()
            return self._client
        except DockerException as e:
            console.print(f"[red][DOCKER] Connection lost: {e}[/red]")
            raise DockerProviderError(f"Docker connection lost: {e}") from e

    def is_connected(self) -> bool:
        """Check if Docker is currently reachable."""
        if self._client is None:
            return False
        try:
            self._client.ping()
            return True
        except DockerException:
            return False
