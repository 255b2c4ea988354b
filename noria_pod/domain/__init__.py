# -----------------------------------------------------------------------------
# DOMAIN LAYER
# -----------------------------------------------------------------------------
# Contains the build and launch contracts (Pydantic models) shared by the
# Image Builder and the Launcher.
# -----------------------------------------------------------------------------

from .models import (
    BuildPhase,
    BuildSpec,
    LaunchConfig,
    LaunchState,
    PackageManager,
    ProvisionSpec,
)

__all__ = [
    "BuildPhase",
    "BuildSpec",
    "LaunchConfig",
    "LaunchState",
    "PackageManager",
    "ProvisionSpec",
]
