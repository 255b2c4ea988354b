# =============================================================================
# NORIA-POD CLI TESTS
# =============================================================================
# Tests for the noria-pod command line and its exit codes.
# =============================================================================

import errno
import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from noria_pod import __version__
from noria_pod.cli import EXIT_DOCKER_UNAVAILABLE, cli
from noria_pod.core.builder import CompilationError, DependencyResolutionError
from noria_pod.core.launcher import EXIT_ARTIFACT_MISSING, EXIT_INVALID_CONFIG, EXIT_SPAWN_FAILED
from noria_pod.infra.docker_client import DockerProviderError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def no_config(tmp_path):
    """Config path that does not exist, so defaults apply."""
    return str(tmp_path / "absent.yaml")


def _last_line(output: str) -> str:
    return [line for line in output.splitlines() if line.strip()][-1]


class TestRoot:
    """Test the root command group."""

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("build", "launch", "argv", "recipe"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_bad_config_file(self, runner, tmp_path):
        path = tmp_path / "noria-pod.yaml"
        path.write_text("launch:\n  shards: many\n")
        result = runner.invoke(cli, ["-c", str(path), "argv"])
        assert result.exit_code == EXIT_INVALID_CONFIG

    def test_section_not_a_mapping(self, runner, tmp_path):
        path = tmp_path / "noria-pod.yaml"
        path.write_text("build: [a, b]\n")
        result = runner.invoke(cli, ["-c", str(path), "build"])
        assert result.exit_code == EXIT_INVALID_CONFIG


class TestArgvCommand:
    """Test `noria-pod argv`."""

    def test_default_deployment(self, runner, no_config):
        result = runner.invoke(cli, ["-c", no_config, "argv"])
        assert result.exit_code == 0
        assert json.loads(_last_line(result.output)) == [
            "--deployment", "myapp", "--no-reuse", "--address", "172.16.0.19", "--shards", "0",
        ]

    def test_option_overrides(self, runner, no_config):
        result = runner.invoke(
            cli,
            ["-c", no_config, "argv", "--deployment", "prod", "--reuse", "--address", "::1", "--shards", "3"],
        )
        assert result.exit_code == 0
        assert json.loads(_last_line(result.output)) == [
            "--deployment", "prod", "--address", "::1", "--shards", "3",
        ]

    def test_env_override(self, runner, no_config, monkeypatch):
        monkeypatch.setenv("NORIA_DEPLOYMENT", "from-env")
        result = runner.invoke(cli, ["-c", no_config, "argv"])
        assert json.loads(_last_line(result.output))[1] == "from-env"

    def test_empty_deployment(self, runner, no_config):
        result = runner.invoke(cli, ["-c", no_config, "argv", "--deployment", ""])
        assert result.exit_code == EXIT_INVALID_CONFIG

    def test_negative_shards(self, runner, no_config):
        result = runner.invoke(cli, ["-c", no_config, "argv", "--shards", "-1"])
        assert result.exit_code == EXIT_INVALID_CONFIG


class TestLaunchCommand:
    """Test `noria-pod launch`."""

    def test_missing_artifact(self, runner, no_config, tmp_path):
        result = runner.invoke(
            cli, ["-c", no_config, "launch", "--artifact", str(tmp_path / "noria-server")]
        )
        assert result.exit_code == EXIT_ARTIFACT_MISSING

    def test_invalid_address(self, runner, no_config, fake_server):
        result = runner.invoke(
            cli, ["-c", no_config, "launch", "--artifact", str(fake_server), "--address", "nowhere"]
        )
        assert result.exit_code == EXIT_INVALID_CONFIG

    @patch("noria_pod.core.launcher.subprocess.Popen")
    def test_spawn_failed(self, mock_popen, runner, no_config, fake_server):
        mock_popen.side_effect = OSError(errno.EACCES, "Permission denied")
        result = runner.invoke(cli, ["-c", no_config, "launch", "--artifact", str(fake_server)])
        assert result.exit_code == EXIT_SPAWN_FAILED

    def test_exit_code_of_server(self, runner, no_config, fake_server, tmp_path):
        """The CLI waits for the server and exits with its code."""
        result = runner.invoke(cli, ["-c", no_config, "launch", "--artifact", str(fake_server)])
        assert result.exit_code == 3
        assert (tmp_path / "args.txt").read_text().splitlines()[:2] == ["--deployment", "myapp"]


class TestBuildCommand:
    """Test `noria-pod build`, with the builder mocked."""

    @patch("noria_pod.cli.ImageBuilder")
    def test_success_prints_image_id(self, mock_builder, runner, no_config):
        mock_builder.return_value.build.return_value.image_id = "sha256:feedface"
        result = runner.invoke(cli, ["-c", no_config, "build"])
        assert result.exit_code == 0
        assert _last_line(result.output) == "sha256:feedface"
        assert mock_builder.return_value.build.call_args.kwargs["launch"] is None

    @patch("noria_pod.cli.ImageBuilder")
    def test_tag_and_cmd(self, mock_builder, runner, no_config):
        mock_builder.return_value.build.return_value.image_id = "sha256:feedface"
        runner.invoke(cli, ["-c", no_config, "build", "--tag", "noria:dev", "--with-cmd"])
        args, kwargs = mock_builder.return_value.build.call_args
        assert args[0].image_tag == "noria:dev"
        assert kwargs["launch"].deployment == "myapp"

    @patch("noria_pod.cli.ImageBuilder")
    def test_compilation_exit_code_unchanged(self, mock_builder, runner, no_config):
        mock_builder.return_value.build.side_effect = CompilationError(
            "Build failed with exit code 101", exit_code=101, output="error[E0432]: unresolved import"
        )
        result = runner.invoke(cli, ["-c", no_config, "build"])
        assert result.exit_code == 101
        assert "E0432" in result.output

    @patch("noria_pod.cli.ImageBuilder")
    def test_dependency_exit_code_unchanged(self, mock_builder, runner, no_config):
        mock_builder.return_value.build.side_effect = DependencyResolutionError(
            "Provisioning failed with exit code 100", exit_code=100, output="E: Unable to locate package"
        )
        result = runner.invoke(cli, ["-c", no_config, "build"])
        assert result.exit_code == 100

    @patch("noria_pod.cli.ImageBuilder")
    def test_docker_unavailable(self, mock_builder, runner, no_config):
        mock_builder.side_effect = DockerProviderError("Docker engine is not available")
        result = runner.invoke(cli, ["-c", no_config, "build"])
        assert result.exit_code == EXIT_DOCKER_UNAVAILABLE

    def test_builds_dir_from_dotenv(self, runner, no_config, source_tree, mock_provider, monkeypatch, tmp_path):
        """A .env in the working directory places the build evidence."""
        evidence = tmp_path / "evidence"
        monkeypatch.chdir(source_tree)
        (source_tree / ".env").write_text(f"NORIA_POD_BUILDS_DIR={evidence}\n")

        with patch("noria_pod.core.builder.DockerProvider", return_value=mock_provider):
            result = runner.invoke(cli, ["-c", no_config, "build"])

        assert result.exit_code == 0
        folders = list(evidence.iterdir())
        assert len(folders) == 1
        assert (folders[0] / "build_pass.json").is_file()
        assert not (source_tree / "builds").exists()


class TestRecipeCommand:
    """Test `noria-pod recipe`."""

    def test_writes_dockerfile(self, runner, no_config, tmp_path):
        output = tmp_path / "Dockerfile"
        result = runner.invoke(cli, ["-c", no_config, "recipe", "-o", str(output), "--dockerignore"])
        assert result.exit_code == 0
        assert output.read_text().startswith("FROM rust:latest as noriacontainer\n")
        assert (tmp_path / ".dockerignore").read_text() == ".git\ntarget\n"

    def test_stdout(self, runner, no_config):
        result = runner.invoke(cli, ["-c", no_config, "recipe", "-o", "-", "--with-cmd"])
        assert result.exit_code == 0
        assert 'CMD ["/app/target/release/noria-server", "--deployment", "myapp"' in result.output
