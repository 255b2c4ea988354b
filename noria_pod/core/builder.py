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
# THE IMAGE BUILDER - NORIA-SERVER COMPILATION
# -----------------------------------------------------------------------------
# Responsibility: Executes a BuildSpec in an isolated build pod and commits
# the result as an image holding an executable noria-server artifact.
#
# Pipeline (strict order, first failure is fatal):
#   source check -> base image -> pod -> inject source -> provision
#   -> compile -> verify artifact -> commit
#
# Nothing here retries or times out. A failed phase surfaces the tool's exit
# code and output verbatim and leaves no image behind. Every build, pass or
# fail, leaves evidence in builds/<build_id>/.
# -----------------------------------------------------------------------------

import io
import json
import tarfile
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from docker.errors import APIError, ImageNotFound
from docker.models.containers import Container
from rich.console import Console

from noria_pod.core.launcher import Launcher
from noria_pod.core.recipe import launch_command
from noria_pod.core.recorder import BuildRecorder
from noria_pod.domain.models import BuildPhase, BuildSpec, LaunchConfig
from noria_pod.infra.docker_client import DockerProvider

console = Console(stderr=True)

# Project descriptor each build tool needs in the source tree
PROJECT_DESCRIPTORS = {
    "cargo": "Cargo.toml",
    "make": "Makefile",
    "go": "go.mod",
    "npm": "package.json",
}


class BuildError(Exception):
    """
    Raised when a build phase fails.

    Carries the phase, the underlying tool's exit code (propagated unchanged
    to the CLI) and its output, verbatim.
    """

    def __init__(self, message: str, phase: BuildPhase, exit_code: int, output: str = "") -> None:
        super().__init__(message)
        self.phase = phase
        self.exit_code = exit_code
        self.output = output


class DependencyResolutionError(BuildError):
    """Raised when the base image or a native package cannot be resolved."""

    def __init__(self, message: str, exit_code: int, output: str = "") -> None:
        super().__init__(message, BuildPhase.DEPENDENCY_RESOLUTION, exit_code, output)


class CompilationError(BuildError):
    """Raised when the build command fails or produces no executable artifact."""

    def __init__(self, message: str, exit_code: int, output: str = "") -> None:
        super().__init__(message, BuildPhase.COMPILATION, exit_code, output)


@dataclass
class ArtifactHandle:
    """Result of a successful build."""

    build_id: str
    image_id: str
    image_tag: str
    artifact_path: str
    duration_seconds: float

    def launch_config(
        self,
        deployment: str,
        address: str,
        reuse: bool = False,
        shards: int = 0,
    ) -> LaunchConfig:
        """LaunchConfig bound to this build's artifact."""
        return LaunchConfig(
            artifact_path=self.artifact_path,
            deployment=deployment,
            reuse=reuse,
            address=address,
            shards=shards,
        )


def _split_tag(image_tag: str) -> tuple[str, str]:
    """Split 'repo[:tag]' into (repo, tag), defaulting tag to 'latest'."""
    name = image_tag.rsplit("/", 1)[-1]
    if ":" in name:
        repository, tag = image_tag.rsplit(":", 1)
        return repository, tag
    return image_tag, "latest"


def verify_command(artifact_path: str) -> list[str]:
    """Pod command that passes only for a regular, executable file."""
    # test -x alone accepts directories
    return ["sh", "-c", 'test -f "$1" && test -x "$1"', "sh", artifact_path]


def _normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
    # Same source tree, same archive
    info.uid = info.gid = 0
    info.uname = info.gname = "root"
    info.mtime = 0
    return info


class ImageBuilder:
    """
    Builds noria-server images from a BuildSpec.

    The Docker connection comes from a DockerProvider (DOCKER_HOST aware).
    """

    def __init__(self, provider: DockerProvider | None = None, builds_dir: Path | None = None) -> None:
        self._provider = provider or DockerProvider()
        self._builds_dir = builds_dir

    def _check_source_tree(self, spec: BuildSpec) -> Path:
        """
        Verify the source tree exists and carries the tool's project descriptor.

        Raises:
            CompilationError: Missing directory or descriptor.
        """
        source = Path(spec.source_dir)
        if not source.is_dir():
            raise CompilationError(f"Source tree not found: {source}", exit_code=1)

        descriptor = PROJECT_DESCRIPTORS.get(Path(spec.build_tool).name)
        if descriptor and not (source / descriptor).is_file():
            raise CompilationError(
                f"{spec.build_tool} needs {descriptor} in {source}",
                exit_code=1,
                output=f"missing project descriptor: {source / descriptor}",
            )
        return source

    def _create_tar(self, source: Path, excludes: tuple[str, ...]) -> bytes:
        """Create an in-memory tar archive of the source tree."""
        tar_buffer = io.BytesIO()

        with tarfile.open(fileobj=tar_buffer, mode="w") as tar:
            for entry in sorted(source.iterdir()):
                if entry.name in excludes:
                    continue
                tar.add(str(entry), arcname=entry.name, filter=_normalize)

        tar_buffer.seek(0)
        return tar_buffer.read()

    def _ensure_image(self, image: str) -> None:
        """
        Pull the base image if not present.

        Raises:
            DependencyResolutionError: The image cannot be pulled.
        """
        client = self._provider.get_client()
        try:
            client.images.get(image)
            console.print(f"[cyan][BUILDER] Base image ready: {image}[/cyan]")
            return
        except ImageNotFound:
            pass

        console.print(f"[yellow][BUILDER] Pulling: {image}...[/yellow]")
        try:
            client.images.pull(image)
        except APIError as e:
            raise DependencyResolutionError(
                f"Base image {image} could not be resolved", exit_code=1, output=str(e)
            ) from e
        console.print(f"[green][BUILDER] Pulled: {image}[/green]")

    def _exec(self, container: Container, cmd: list[str], workdir: str) -> tuple[int, str]:
        """Run a command in the pod and return (exit_code, output)."""
        exit_code, output = container.exec_run(cmd=cmd, workdir=workdir)
        output_str = output.decode("utf-8", errors="replace") if isinstance(output, bytes) else str(output)
        return exit_code, output_str

    def _record_failure(self, recorder: BuildRecorder, error: BuildError) -> None:
        console.print(
            f"[red][BUILDER] {error.phase.value} FAILED (exit: {error.exit_code}): {error}[/red]"
        )
        recorder.save_fail(error.phase, error.exit_code, error.output)
        recorder.finalize()

    def build(
        self,
        spec: BuildSpec,
        launch: LaunchConfig | None = None,
        build_id: str | None = None,
    ) -> ArtifactHandle:
        """
        Compile the artifact described by spec and commit it as an image.

        Args:
            spec: The BuildSpec to execute.
            launch: Optional launch contract baked into the image CMD.
            build_id: Evidence folder name (random when omitted).

        Returns:
            ArtifactHandle for the committed image.

        Raises:
            DependencyResolutionError: Base image or native packages unresolvable.
            CompilationError: Source tree invalid, build failed, or no executable artifact.
            InvalidConfig: launch was given and fails launcher validation.
        """
        if launch is not None:
            Launcher().validate(launch)

        build_id = build_id or uuid.uuid4().hex
        start_time = datetime.now(timezone.utc)

        recorder = BuildRecorder(build_id, self._builds_dir)
        recorder.log("BUILD_STARTED", spec.image_tag)
        recorder.save_spec(spec)

        container: Container | None = None

        try:
            source = self._check_source_tree(spec)
            recorder.log("SOURCE_CHECKED", str(source))

            self._ensure_image(spec.base_image)
            recorder.log("IMAGE_READY", spec.base_image)

            client = self._provider.get_client()
            container = client.containers.run(
                spec.base_image,
                command="tail -f /dev/null",
                name=f"noria_pod_{build_id[:8]}",
                detach=True,
                auto_remove=False,
                working_dir=spec.workdir,
            )
            recorder.log("POD_SPAWNED", container.short_id)
            console.print(f"[green][BUILDER] Pod active: {container.short_id}[/green]")

            console.print(f"[cyan][BUILDER] Injecting source tree: {source}[/cyan]")
            container.put_archive(spec.workdir, self._create_tar(source, spec.excludes))
            recorder.log("SOURCE_INJECTED", spec.workdir)

            packages = " ".join(spec.provision.packages) or "(none)"
            console.print(f"[cyan][BUILDER] Provisioning: {packages}[/cyan]")
            recorder.log("PROVISION_STARTED", packages)
            with console.status("[yellow]Resolving native dependencies...[/yellow]"):
                exit_code, output = self._exec(
                    container, ["sh", "-c", spec.provision.provision_command()], spec.workdir
                )
            if exit_code != 0:
                raise DependencyResolutionError(
                    f"Provisioning failed with exit code {exit_code}",
                    exit_code=exit_code,
                    output=output,
                )
            recorder.log("PROVISIONED")

            console.print(f"[cyan][BUILDER] Compiling: {' '.join(spec.build_command)}[/cyan]")
            recorder.log("COMPILE_STARTED", " ".join(spec.build_command))
            with console.status(f"[yellow]Building {spec.binary_name}...[/yellow]"):
                exit_code, build_output = self._exec(
                    container, list(spec.build_command), spec.workdir
                )
            if exit_code != 0:
                raise CompilationError(
                    f"Build failed with exit code {exit_code}",
                    exit_code=exit_code,
                    output=build_output,
                )
            recorder.log("COMPILED")

            exit_code, output = self._exec(container, verify_command(spec.artifact_path), spec.workdir)
            if exit_code != 0:
                raise CompilationError(
                    f"Build finished but {spec.artifact_path} is missing or not executable",
                    exit_code=exit_code,
                    output=build_output,
                )
            recorder.log("ARTIFACT_VERIFIED", spec.artifact_path)

            changes = [f"WORKDIR {spec.workdir}"]
            if launch is not None:
                changes.append(f"CMD {json.dumps(launch_command(spec, launch))}")
            repository, tag = _split_tag(spec.image_tag)
            image = container.commit(repository=repository, tag=tag, changes=changes)
            recorder.log("IMAGE_COMMITTED", image.id)

            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            console.print(f"[green][BUILDER] Image {spec.image_tag} ready ({duration:.1f}s)[/green]")
            recorder.save_pass(image.id, spec.artifact_path, build_output)
            recorder.finalize()

            return ArtifactHandle(
                build_id=build_id,
                image_id=image.id,
                image_tag=spec.image_tag,
                artifact_path=spec.artifact_path,
                duration_seconds=duration,
            )

        except BuildError as e:
            self._record_failure(recorder, e)
            raise

        except Exception as e:
            recorder.log("BUILD_ERROR", str(e))
            recorder.finalize()
            raise

        finally:
            if container is not None:
                try:
                    container.remove(force=True)
                    console.print(f"[dim][BUILDER] Pod removed: {container.short_id}[/dim]")
                except APIError as e:
                    console.print(f"[yellow][BUILDER] Pod cleanup failed: {e}[/yellow]")
