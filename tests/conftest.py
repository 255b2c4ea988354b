"""
Pytest configuration and fixtures for noria-pod tests.
"""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

NORIA_ENV = (
    "NORIA_POD_CONFIG",
    "NORIA_DEPLOYMENT",
    "NORIA_ADDRESS",
    "NORIA_SHARDS",
    "NORIA_NO_REUSE",
    "NORIA_ARTIFACT",
    "NORIA_POD_BUILDS_DIR",
    "DOCKER_HOST",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's environment out of config resolution."""
    for name in NORIA_ENV:
        # setenv first so values loaded from .env are removed on teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture
def mock_docker_client():
    """Mock Docker client for testing."""
    client = MagicMock()
    client.ping.return_value = True
    client.images.get.return_value = MagicMock()

    container = MagicMock()
    container.short_id = "abc123"
    container.exec_run.return_value = (0, b"Success")
    container.commit.return_value = MagicMock(id="sha256:feedface")

    client.containers.run.return_value = container

    return client


@pytest.fixture
def mock_provider(mock_docker_client):
    """DockerProvider stand-in handing out the mock client."""
    provider = MagicMock()
    provider.get_client.return_value = mock_docker_client
    return provider


@pytest.fixture
def source_tree(tmp_path):
    """A minimal cargo project with build leftovers that must not be shipped."""
    root = tmp_path / "noria"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text('[package]\nname = "noria-server"\nversion = "0.1.0"\n')
    (root / "src" / "main.rs").write_text("fn main() {}\n")
    (root / "target" / "release").mkdir(parents=True)
    (root / "target" / "release" / "stale").write_text("old build")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/master\n")
    return root


@pytest.fixture
def fake_server(tmp_path):
    """
    Executable standing in for noria-server.

    Writes its arguments, one per line, to args.txt and exits with 3.
    """
    args_file = tmp_path / "args.txt"
    script = tmp_path / "noria-server"
    script.write_text(f"#!/bin/sh\nprintf '%s\\n' \"$@\" > \"{args_file}\"\nexit 3\n")
    os.chmod(script, 0o755)
    return script
