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
# THE LAUNCHER - NORIA-SERVER PROCESS START
# -----------------------------------------------------------------------------
# Responsibility: Turns a LaunchConfig into a running noria-server process.
#
# Contract with the server binary (fixed order):
#   --deployment <name> [--no-reuse] --address <ip> --shards <n>
#
# The Launcher validates, spawns, and hands the process back. Supervision
# (restarts, health checks) belongs to whoever holds the ProcessHandle.
# -----------------------------------------------------------------------------

import ipaddress
import os
import subprocess
from pathlib import Path

from rich.console import Console

from noria_pod.domain.models import LaunchConfig, LaunchState

console = Console(stderr=True)

# Exit codes (sysexits.h) - configuration errors vs environment errors
EXIT_INVALID_CONFIG = 64  # EX_USAGE
EXIT_ARTIFACT_MISSING = 66  # EX_NOINPUT
EXIT_SPAWN_FAILED = 71  # EX_OSERR

_TRANSITIONS = {
    LaunchState.UNSTARTED: {LaunchState.STARTING},
    LaunchState.STARTING: {LaunchState.RUNNING},
    LaunchState.RUNNING: {LaunchState.EXITED},
    LaunchState.EXITED: set(),
}


class LaunchError(Exception):
    """Base class for launch failures. No process is running after one."""

    exit_code = 1


class InvalidConfig(LaunchError):
    """
    Raised when a LaunchConfig fails validation.

    Contains the offending field and what was wrong with it.
    """

    exit_code = EXIT_INVALID_CONFIG

    def __init__(self, message: str, field: str, details: str = "") -> None:
        super().__init__(message)
        self.field = field
        self.details = details


class ArtifactMissing(LaunchError):
    """Raised when the artifact does not exist or is not executable."""

    exit_code = EXIT_ARTIFACT_MISSING

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


class SpawnFailed(LaunchError):
    """Raised when the operating system refuses to start the process."""

    exit_code = EXIT_SPAWN_FAILED

    def __init__(self, message: str, os_error: OSError) -> None:
        super().__init__(message)
        self.os_error = os_error
        self.errno = os_error.errno


class InvalidTransition(Exception):
    """Raised on a ProcessHandle state change the lifecycle does not allow."""

    pass


def build_argv(cfg: LaunchConfig) -> list[str]:
    """
    Build the server argument vector from a LaunchConfig.

    Pure: no validation, no filesystem access.

    Example:
        LaunchConfig(deployment="myapp", reuse=False, address="172.16.0.19", shards=0)
        -> ["--deployment", "myapp", "--no-reuse", "--address", "172.16.0.19", "--shards", "0"]
    """
    argv = ["--deployment", cfg.deployment]
    if not cfg.reuse:
        argv.append("--no-reuse")
    argv += ["--address", cfg.address, "--shards", str(cfg.shards)]
    return argv


class ProcessHandle:
    """
    A launched noria-server process.

    Lifecycle: UNSTARTED -> STARTING -> RUNNING -> EXITED. EXITED is
    terminal; a relaunch goes through Launcher.launch and a new handle.
    """

    def __init__(self, config: LaunchConfig, argv: list[str]) -> None:
        self.config = config
        self.argv = argv
        self.state = LaunchState.UNSTARTED
        self._process: subprocess.Popen | None = None

    def _advance(self, new_state: LaunchState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {new_state.value}")
        self.state = new_state

    def _attach(self, process: subprocess.Popen) -> None:
        self._process = process
        self._advance(LaunchState.RUNNING)

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process else None

    def _observe(self, code: int | None) -> int | None:
        if code is not None and self.state == LaunchState.RUNNING:
            self._advance(LaunchState.EXITED)
            console.print(f"[cyan][LAUNCHER] Process {self.pid} exited ({code})[/cyan]")
        return code

    def poll(self) -> int | None:
        """Return the exit code if the process has terminated, else None."""
        if self._process is None:
            return None
        return self._observe(self._process.poll())

    def wait(self, timeout: float | None = None) -> int:
        """
        Block until the process exits.

        Raises:
            subprocess.TimeoutExpired: If timeout elapses first.
        """
        if self._process is None:
            raise InvalidTransition(f"cannot wait on a {self.state.value} process")
        return self._observe(self._process.wait(timeout=timeout))

    def terminate(self) -> None:
        if self._process is not None and self.state == LaunchState.RUNNING:
            self._process.terminate()

    def kill(self) -> None:
        if self._process is not None and self.state == LaunchState.RUNNING:
            self._process.kill()


class Launcher:
    """Validates a LaunchConfig and starts the artifact it points to."""

    def validate(self, cfg: LaunchConfig) -> None:
        """
        Check the semantic constraints of a LaunchConfig.

        Raises:
            InvalidConfig: Empty deployment name, non-IP address, negative shards.
        """
        if not cfg.deployment.strip():
            raise InvalidConfig("Deployment name must not be empty", field="deployment")

        try:
            ipaddress.ip_address(cfg.address)
        except ValueError:
            raise InvalidConfig(
                f"Bind address is not an IPv4/IPv6 literal: {cfg.address!r}",
                field="address",
                details=cfg.address,
            )

        if cfg.shards < 0:
            raise InvalidConfig(
                f"Shard count must be non-negative, got {cfg.shards}",
                field="shards",
                details=str(cfg.shards),
            )

    def check_artifact(self, cfg: LaunchConfig) -> Path:
        """
        Verify the artifact exists and is executable.

        Raises:
            ArtifactMissing: Missing, not a regular file, or not executable.
        """
        path = Path(cfg.artifact_path)
        if not path.is_file():
            raise ArtifactMissing(f"Artifact not found: {path}", path=str(path))
        if not os.access(path, os.X_OK):
            raise ArtifactMissing(f"Artifact is not executable: {path}", path=str(path))
        return path

    def launch(self, cfg: LaunchConfig) -> ProcessHandle:
        """
        Start noria-server with the argument vector built from cfg.

        The child gets an empty environment, no stdin and no inherited file
        descriptors; stdout and stderr go where the caller's go.

        Returns:
            ProcessHandle in the RUNNING state.

        Raises:
            InvalidConfig: cfg failed validation (nothing spawned).
            ArtifactMissing: artifact path unusable (nothing spawned).
            SpawnFailed: the OS refused to start the process.
        """
        try:
            self.validate(cfg)
            artifact = self.check_artifact(cfg)
        except LaunchError as e:
            console.print(f"[red][LAUNCHER] Launch refused: {e}[/red]")
            raise

        handle = ProcessHandle(cfg, build_argv(cfg))
        handle._advance(LaunchState.STARTING)
        command = [str(artifact), *handle.argv]
        console.print(f"[cyan][LAUNCHER] Starting: {' '.join(command)}[/cyan]")

        try:
            process = subprocess.Popen(
                command,
                env={},
                stdin=subprocess.DEVNULL,
                close_fds=True,
            )
        except OSError as e:
            console.print(f"[red][LAUNCHER] Spawn failed: {e}[/red]")
            raise SpawnFailed(f"Could not start {artifact}: {e}", os_error=e) from e

        handle._attach(process)
        console.print(
            f"[green][LAUNCHER] Running: pid {handle.pid} "
            f"(deployment {cfg.deployment}, {cfg.address}, shards {cfg.shards})[/green]"
        )
        return handle


def launch(cfg: LaunchConfig) -> ProcessHandle:
    """Module-level shortcut for Launcher().launch(cfg)."""
    return Launcher().launch(cfg)
