# -----------------------------------------------------------------------------
# CORE LAYER
# -----------------------------------------------------------------------------
# The two pipeline stages and what they share:
# - ImageBuilder: compiles noria-server in a build pod, commits the image
# - Launcher: validates a LaunchConfig and starts the artifact
# - Recipe: Dockerfile rendering of the same pipeline
# - BuildRecorder: per-build evidence folder
# - Config: noria-pod.yaml + environment overrides
# -----------------------------------------------------------------------------

from .builder import (
    ArtifactHandle,
    BuildError,
    CompilationError,
    DependencyResolutionError,
    ImageBuilder,
)
from .config import ConfigError, PodConfig, load_config
from .launcher import (
    ArtifactMissing,
    InvalidConfig,
    InvalidTransition,
    Launcher,
    LaunchError,
    ProcessHandle,
    SpawnFailed,
    build_argv,
    launch,
)
from .recipe import render_dockerfile

__all__ = [
    "ArtifactHandle", "BuildError", "CompilationError", "DependencyResolutionError", "ImageBuilder",
    "ConfigError", "PodConfig", "load_config",
    "ArtifactMissing", "InvalidConfig", "InvalidTransition", "Launcher", "LaunchError",
    "ProcessHandle", "SpawnFailed", "build_argv", "launch",
    "render_dockerfile",
]
