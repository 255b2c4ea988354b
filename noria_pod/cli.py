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
# NORIA-POD CLI
# -----------------------------------------------------------------------------
# Responsibility: Operator entry point for the build and launch stages.
#
# Commands:
# - build:  compile noria-server in a build pod and commit the image
# - launch: start noria-server and wait for it, exiting with its exit code
# - argv:   print the server argument vector (nothing is spawned)
# - recipe: write the equivalent Dockerfile
#
# Exit codes: build failures propagate the tool's exit code unchanged;
# launch configuration errors (64, 66) differ from spawn errors (71).
# -----------------------------------------------------------------------------

import functools
import json
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel

from noria_pod import __version__
from noria_pod.core.builder import BuildError, ImageBuilder
from noria_pod.core.config import ConfigError, PodConfig, load_config
from noria_pod.core.launcher import EXIT_INVALID_CONFIG, Launcher, LaunchError, build_argv
from noria_pod.core.recipe import render_dockerfile, render_dockerignore
from noria_pod.domain.models import LaunchConfig
from noria_pod.infra.docker_client import DockerProviderError

console = Console(stderr=True)

EXIT_DOCKER_UNAVAILABLE = 69  # EX_UNAVAILABLE


def _launch_options(command):
    """Options that override the launch section of the config."""

    @click.option("--artifact", default=None, help="Path of the noria-server executable.")
    @click.option("--deployment", default=None, help="Deployment name to join or create.")
    @click.option("--address", default=None, help="IPv4/IPv6 address to listen on.")
    @click.option("--shards", type=int, default=None, help="Shard count (0 = unsharded).")
    @click.option(
        "--no-reuse/--reuse",
        "no_reuse",
        default=None,
        help="Require a fresh deployment (or allow attaching to an existing one).",
    )
    @functools.wraps(command)
    def wrapper(*args, artifact, deployment, address, shards, no_reuse, **kwargs):
        overrides = {
            "artifact_path": artifact,
            "deployment": deployment,
            "address": address,
            "shards": shards,
            "reuse": None if no_reuse is None else not no_reuse,
        }
        overrides = {key: value for key, value in overrides.items() if value is not None}
        return command(*args, overrides=overrides, **kwargs)

    return wrapper


def _launch_config(config: PodConfig, overrides: dict) -> LaunchConfig:
    if not overrides:
        return config.launch
    return LaunchConfig(**{**config.launch.model_dump(), **overrides})


def _exit_on_launch_error(e: LaunchError) -> None:
    console.print(
        Panel(
            f"[bold red]{type(e).__name__}[/bold red]\n\n{e}",
            title="LAUNCH REFUSED",
            border_style="red",
        )
    )
    raise SystemExit(e.exit_code)


@click.group()
@click.version_option(version=__version__, prog_name="noria-pod")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Config file (default: $NORIA_POD_CONFIG or ./noria-pod.yaml).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """noria-pod - build and launch noria-server."""
    load_dotenv(Path.cwd() / ".env")
    try:
        ctx.obj = load_config(config_path)
    except ConfigError as e:
        console.print(f"[red][CONFIG] {e}[/red]")
        raise SystemExit(EXIT_INVALID_CONFIG)


@cli.command()
@click.option("--tag", default=None, help="Override the image tag.")
@click.option("--with-cmd", is_flag=True, help="Bake the launch contract into the image CMD.")
@click.pass_obj
def build(config: PodConfig, tag: str | None, with_cmd: bool) -> None:
    """Compile noria-server and commit the image."""
    spec = config.build
    if tag:
        spec = spec.model_copy(update={"image_tag": tag})

    try:
        handle = ImageBuilder().build(spec, launch=config.launch if with_cmd else None)
    except DockerProviderError:
        raise SystemExit(EXIT_DOCKER_UNAVAILABLE)
    except LaunchError as e:
        _exit_on_launch_error(e)
    except BuildError as e:
        console.print(
            Panel(
                f"[bold red]{type(e).__name__}[/bold red] ({e.phase.value})\n\n{e}",
                title="BUILD FAILED",
                border_style="red",
            )
        )
        if e.output:
            # Tool output verbatim
            console.print(e.output, markup=False, highlight=False)
        raise SystemExit(e.exit_code)

    click.echo(handle.image_id)


@cli.command()
@_launch_options
@click.pass_obj
def launch(config: PodConfig, overrides: dict) -> None:
    """Start noria-server and wait for it to exit."""
    cfg = _launch_config(config, overrides)
    try:
        handle = Launcher().launch(cfg)
    except LaunchError as e:
        _exit_on_launch_error(e)

    code = handle.wait()
    # Killed by signal N -> 128 + N, as a shell would report it
    raise SystemExit(code if code >= 0 else 128 - code)


@cli.command()
@_launch_options
@click.pass_obj
def argv(config: PodConfig, overrides: dict) -> None:
    """Print the server argument vector as JSON."""
    cfg = _launch_config(config, overrides)
    try:
        Launcher().validate(cfg)
    except LaunchError as e:
        _exit_on_launch_error(e)
    click.echo(json.dumps(build_argv(cfg)))


@cli.command()
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=Path("Dockerfile"),
    show_default=True,
    help="Where to write the Dockerfile ('-' for stdout).",
)
@click.option("--with-cmd", is_flag=True, help="Add a CMD running the launch contract.")
@click.option("--dockerignore", is_flag=True, help="Also write .dockerignore next to it.")
@click.pass_obj
def recipe(config: PodConfig, output: Path, with_cmd: bool, dockerignore: bool) -> None:
    """Write the Dockerfile equivalent of the build."""
    launch_cfg = None
    if with_cmd:
        launch_cfg = config.launch
        try:
            Launcher().validate(launch_cfg)
        except LaunchError as e:
            _exit_on_launch_error(e)

    text = render_dockerfile(config.build, launch_cfg)
    if str(output) == "-":
        click.echo(text, nl=False)
        return

    output.write_text(text)
    console.print(f"[green][RECIPE] Written: {output}[/green]")
    if dockerignore:
        ignore_path = output.parent / ".dockerignore"
        ignore_path.write_text(render_dockerignore(config.build))
        console.print(f"[green][RECIPE] Written: {ignore_path}[/green]")


def main() -> None:
    cli()
