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
# CONTAINER RECIPE
# -----------------------------------------------------------------------------
# Responsibility: Renders a BuildSpec (and optionally a LaunchConfig) as a
# Dockerfile, for builds that go through `docker build` instead of the
# ImageBuilder pod. Same stages, same order:
#   FROM -> WORKDIR -> COPY -> provision -> compile -> CMD
# -----------------------------------------------------------------------------

import json
import shlex

from noria_pod.core.launcher import build_argv
from noria_pod.domain.models import BuildSpec, LaunchConfig


def stage_name(spec: BuildSpec) -> str:
    """Build stage name: the repository part of the image tag."""
    name = spec.image_tag.rsplit("/", 1)[-1]
    return name.split(":", 1)[0]


def launch_command(spec: BuildSpec, launch: LaunchConfig) -> list[str]:
    """The exec-form CMD of a built image: the artifact plus its arguments."""
    return [spec.artifact_path, *build_argv(launch)]


def render_dockerfile(spec: BuildSpec, launch: LaunchConfig | None = None) -> str:
    """
    Render the Dockerfile for a build.

    Args:
        spec: What to compile and how.
        launch: When given, the image gets an exec-form CMD starting the
            artifact with the launcher's argument vector.

    Returns:
        Dockerfile text, newline terminated.
    """
    lines = [
        f"FROM {spec.base_image} as {stage_name(spec)}",
        "",
        f"WORKDIR {spec.workdir}",
        "",
        "COPY . .",
        "",
        f"RUN {spec.provision.provision_command()}",
        "",
        f"RUN {shlex.join(spec.build_command)}",
    ]

    if launch is not None:
        lines += ["", f"CMD {json.dumps(launch_command(spec, launch))}"]

    return "\n".join(lines) + "\n"


def render_dockerignore(spec: BuildSpec) -> str:
    """Render a .dockerignore matching the entries the pod build skips."""
    return "".join(f"{name}\n" for name in spec.excludes)
