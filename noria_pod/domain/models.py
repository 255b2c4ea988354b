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
# DOMAIN MODELS - BUILD & LAUNCH CONTRACTS
# -----------------------------------------------------------------------------
# These Pydantic models define the two inputs of the pipeline:
# - BuildSpec: how the noria-server artifact is compiled inside a build pod
# - LaunchConfig: how the compiled artifact is started
#
# Both are frozen once created. BuildSpec is validated at the gate (bad
# package names or relative paths never reach Docker). LaunchConfig only
# checks types; the Launcher owns its semantic checks so that it can report
# them as InvalidConfig.
# -----------------------------------------------------------------------------

import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator

# Debian and Alpine share this package-name grammar
PACKAGE_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9+.\-]*$")

DEFAULT_PACKAGES = ("clang", "libclang-dev", "libssl-dev", "liblz4-dev", "build-essential")
DEFAULT_BUILD_COMMAND = ("cargo", "build", "--release", "--bin", "noria-server")
DEFAULT_ARTIFACT_PATH = "/app/target/release/noria-server"


class PackageManager(str, Enum):
    """System package managers a build pod can be provisioned with."""

    APT = "apt"
    APK = "apk"


class BuildPhase(str, Enum):
    """
    The phase of the build pipeline an error came from.

    Operators triage on this first: a DEPENDENCY_RESOLUTION failure means the
    base environment could not be prepared, COMPILATION means the source did
    not produce a runnable artifact.
    """

    DEPENDENCY_RESOLUTION = "dependency_resolution"
    COMPILATION = "compilation"


class LaunchState(str, Enum):
    """Lifecycle of a launched server process. EXITED is terminal."""

    UNSTARTED = "unstarted"
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"


# (Query, install) shell templates per package manager
_PROVISION_TEMPLATES = {
    PackageManager.APT: ('dpkg -s "$pkg" >/dev/null 2>&1', "apt-get update && apt-get install -y"),
    PackageManager.APK: ('apk info -e "$pkg" >/dev/null 2>&1', "apk add --no-cache"),
}


class ProvisionSpec(BaseModel):
    """
    Native dependencies a build pod needs before compiling.

    Provisioning is an explicit input to the build rather than ambient state
    of the build environment. The generated command only installs what is
    missing, so running it against an already provisioned pod is a no-op.
    """

    package_manager: PackageManager = Field(
        default=PackageManager.APT, description="Package manager of the base image"
    )
    packages: tuple[str, ...] = Field(
        default=DEFAULT_PACKAGES,
        description="System packages (toolchain, TLS, compression, binding headers)",
    )

    class Config:
        frozen = True

    @field_validator("packages")
    @classmethod
    def _check_package_names(cls, packages: tuple[str, ...]) -> tuple[str, ...]:
        for name in packages:
            if not PACKAGE_NAME_PATTERN.match(name):
                raise ValueError(f"Invalid package name: {name!r}")
        return packages

    def provision_command(self) -> str:
        """
        Render the idempotent install command.

        Returns:
            A POSIX shell command. With no packages this is `true`.
        """
        if not self.packages:
            return "true"

        query, install = _PROVISION_TEMPLATES[PackageManager(self.package_manager)]
        names = " ".join(self.packages)
        return (
            f'missing=""; for pkg in {names}; do {query} || missing="$missing $pkg"; done; '
            f'if [ -n "$missing" ]; then {install} $missing; fi'
        )


class BuildSpec(BaseModel):
    """
    The complete instructions for producing a noria-server image.

    Fields:
    - base_image: Base environment identity (e.g., rust:latest)
    - workdir: Working directory inside the build pod, where the source lands
    - source_dir: Host path of the source tree to ship into the pod
    - provision: Native dependencies to resolve before the build command runs
    - build_command: The compiler invocation, in release mode, for one binary
    - artifact_path: Where the executable must exist after a successful build
    - image_tag: Tag given to the committed image
    - excludes: Top-level entries of source_dir that are not shipped
    """

    base_image: str = Field(default="rust:latest", min_length=1)
    workdir: str = Field(default="/app", description="Absolute path inside the build pod")
    source_dir: str = Field(default=".", min_length=1, description="Host source tree")
    provision: ProvisionSpec = Field(default_factory=ProvisionSpec)
    build_command: tuple[str, ...] = Field(default=DEFAULT_BUILD_COMMAND, min_length=1)
    artifact_path: str = Field(default=DEFAULT_ARTIFACT_PATH)
    image_tag: str = Field(default="noriacontainer:latest", min_length=1)
    excludes: tuple[str, ...] = Field(default=(".git", "target"))

    class Config:
        frozen = True
        str_strip_whitespace = True

    @field_validator("workdir", "artifact_path")
    @classmethod
    def _check_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"Path must be absolute inside the build pod: {value!r}")
        return value

    @property
    def build_tool(self) -> str:
        """The executable that runs the build (e.g., 'cargo')."""
        return self.build_command[0]

    @property
    def binary_name(self) -> str:
        """The single binary target, from `--bin` or the artifact file name."""
        if "--bin" in self.build_command:
            index = self.build_command.index("--bin")
            if index + 1 < len(self.build_command):
                return self.build_command[index + 1]
        return self.artifact_path.rsplit("/", 1)[-1]


class LaunchConfig(BaseModel):
    """
    The fixed command-line contract of a noria-server launch.

    Only types are checked here. An empty deployment name, a malformed
    address or a negative shard count is a valid LaunchConfig object and an
    invalid launch: the Launcher rejects it before spawning anything.
    """

    artifact_path: str = Field(default=DEFAULT_ARTIFACT_PATH)
    deployment: str = Field(default="myapp", description="Logical deployment to join or create")
    reuse: bool = Field(
        default=False, description="Allow attaching to an existing deployment of the same name"
    )
    address: str = Field(default="172.16.0.19", description="IPv4/IPv6 listen address")
    shards: int = Field(default=0, description="Shard count, 0 means unsharded")

    class Config:
        frozen = True
