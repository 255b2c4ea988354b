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
# POD CONFIGURATION
# -----------------------------------------------------------------------------
# Responsibility: Loads the build and launch sections from noria-pod.yaml and
# applies environment overrides for the deployment identity.
#
# Precedence (lowest to highest): model defaults, YAML file, environment.
# A missing file is not an error: the defaults reproduce the stock
# noria-server image (rust:latest, cargo release build, deployment 'myapp').
# -----------------------------------------------------------------------------

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console

from noria_pod.domain.models import BuildSpec, LaunchConfig

console = Console(stderr=True)

CONFIG_PATH = Path("noria-pod.yaml")

# Environment variable -> launch field
LAUNCH_OVERRIDES = {
    "NORIA_DEPLOYMENT": "deployment",
    "NORIA_ADDRESS": "address",
    "NORIA_SHARDS": "shards",
    "NORIA_ARTIFACT": "artifact_path",
}


class ConfigError(Exception):
    """Raised when the configuration file or an override cannot be parsed."""

    def __init__(self, message: str, source: str) -> None:
        super().__init__(message)
        self.source = source


class PodConfig(BaseModel):
    """Pydantic model for noria-pod.yaml."""

    build: BuildSpec = Field(default_factory=BuildSpec)
    launch: LaunchConfig = Field(default_factory=LaunchConfig)


def _env_overrides() -> dict:
    overrides = {}
    for variable, field in LAUNCH_OVERRIDES.items():
        value = os.getenv(variable)
        if value is not None and value != "":
            overrides[field] = value

    no_reuse = os.getenv("NORIA_NO_REUSE")
    if no_reuse:
        overrides["reuse"] = no_reuse.lower() not in ("1", "true", "yes")
    return overrides


def _section(data: dict, name: str, path: Path) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' in {path} must be a mapping", source=str(path))
    return dict(section)


def load_config(path: Path | None = None) -> PodConfig:
    """
    Load the pod configuration.

    Args:
        path: YAML file. Defaults to NORIA_POD_CONFIG, then ./noria-pod.yaml.

    Returns:
        PodConfig with validated build and launch sections.

    Raises:
        ConfigError: Unreadable YAML or values of the wrong type.
    """
    path = path or Path(os.getenv("NORIA_POD_CONFIG", str(CONFIG_PATH)))

    if path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}", source=str(path)) from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping", source=str(path))
        console.print(f"[green][CONFIG] Loaded: {path}[/green]")
    else:
        console.print(f"[yellow][CONFIG] {path} not found, using defaults[/yellow]")
        data = {}

    build = _section(data, "build", path)
    launch = _section(data, "launch", path)

    # The launched artifact is the built one unless stated otherwise
    if "artifact_path" in build and "artifact_path" not in launch:
        launch["artifact_path"] = build["artifact_path"]

    launch.update(_env_overrides())

    try:
        return PodConfig(build=build, launch=launch)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", source=str(path)) from e
