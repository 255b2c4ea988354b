# =============================================================================
# NORIA-POD RECIPE TESTS
# =============================================================================
# Tests for Dockerfile rendering.
# =============================================================================

import json

from noria_pod.core.recipe import (
    launch_command,
    render_dockerfile,
    render_dockerignore,
    stage_name,
)
from noria_pod.domain.models import BuildSpec, LaunchConfig, ProvisionSpec


class TestStageName:
    """Test stage naming from the image tag."""

    def test_plain_tag(self):
        assert stage_name(BuildSpec(image_tag="noriacontainer:latest")) == "noriacontainer"

    def test_registry_with_port(self):
        assert stage_name(BuildSpec(image_tag="registry:5000/team/noria:1.2")) == "noria"

    def test_untagged(self):
        assert stage_name(BuildSpec(image_tag="noria")) == "noria"


class TestRenderDockerfile:
    """Test render_dockerfile."""

    def test_default_stages_in_order(self):
        """Stages appear as FROM, WORKDIR, COPY, provision, compile."""
        lines = [line for line in render_dockerfile(BuildSpec()).splitlines() if line]
        assert lines[0] == "FROM rust:latest as noriacontainer"
        assert lines[1] == "WORKDIR /app"
        assert lines[2] == "COPY . ."
        assert lines[3].startswith("RUN ") and "apt-get install -y" in lines[3]
        assert lines[4] == "RUN cargo build --release --bin noria-server"
        assert len(lines) == 5

    def test_provision_lists_every_package(self):
        text = render_dockerfile(BuildSpec())
        for package in ("clang", "libclang-dev", "libssl-dev", "liblz4-dev", "build-essential"):
            assert package in text

    def test_empty_provision(self):
        spec = BuildSpec(provision=ProvisionSpec(packages=[]))
        assert "RUN true" in render_dockerfile(spec)

    def test_cmd_with_launch(self):
        """The CMD is exec-form: artifact then the launcher argument vector."""
        launch = LaunchConfig(deployment="myapp", reuse=False, address="172.16.0.19", shards=0)
        last = render_dockerfile(BuildSpec(), launch).splitlines()[-1]
        assert last.startswith("CMD ")
        assert json.loads(last[len("CMD "):]) == [
            "/app/target/release/noria-server",
            "--deployment", "myapp",
            "--no-reuse",
            "--address", "172.16.0.19",
            "--shards", "0",
        ]

    def test_cmd_uses_built_artifact(self):
        """The image runs the artifact it built, whatever the launch section says."""
        spec = BuildSpec(artifact_path="/src/target/release/noria-server", workdir="/src")
        launch = LaunchConfig(artifact_path="/elsewhere/noria-server")
        assert launch_command(spec, launch)[0] == "/src/target/release/noria-server"

    def test_trailing_newline(self):
        assert render_dockerfile(BuildSpec()).endswith("\n")


class TestRenderDockerignore:
    """Test render_dockerignore."""

    def test_excludes(self):
        assert render_dockerignore(BuildSpec()) == ".git\ntarget\n"
