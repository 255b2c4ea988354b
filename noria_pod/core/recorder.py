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
# BUILD RECORDER - EVIDENCE FOR EVERY BUILD
# -----------------------------------------------------------------------------
# Responsibility: Leaves a trail for every image build, pass or fail, so an
# operator can triage a failed build without re-running it verbosely.
#
# Every build gets builds/<build_id>/ with:
# - build_spec.json: the BuildSpec that was executed
# - build_pass.json OR build_fail.json: the verdict, with tool output verbatim
# - build_log.json: timestamped event log of the whole session
# -----------------------------------------------------------------------------

import json
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console

from noria_pod.domain.models import BuildPhase, BuildSpec

console = Console(stderr=True)

# NORIA_POD_BUILDS_DIR overrides this, read at each build
DEFAULT_BUILDS_DIR = "builds"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class BuildLogEntry:
    """A single entry in the build log."""

    timestamp: str
    event: str
    details: str | None = None


class BuildRecorder:
    """Evidence folder for one build."""

    def __init__(self, build_id: str, builds_dir: Path | None = None) -> None:
        self.build_id = build_id
        builds_dir = builds_dir or Path(os.getenv("NORIA_POD_BUILDS_DIR", DEFAULT_BUILDS_DIR))
        self.folder = builds_dir / build_id
        self.folder.mkdir(parents=True, exist_ok=True)
        self._log: list[BuildLogEntry] = []

        console.print(f"[cyan][RECORDER] Evidence folder: {self.folder}[/cyan]")

    @property
    def events(self) -> list[str]:
        """Event names recorded so far, in order."""
        return [entry.event for entry in self._log]

    def log(self, event: str, details: str | None = None) -> None:
        """Record an event in the build log."""
        self._log.append(BuildLogEntry(timestamp=_now(), event=event, details=details))

    def _write(self, name: str, payload: dict | list) -> Path:
        path = self.folder / name
        with open(path, "w") as f:
            json.dump(payload, f, indent=2)
        return path

    def save_spec(self, spec: BuildSpec) -> None:
        """Save build_spec.json to the evidence folder."""
        path = self._write("build_spec.json", spec.model_dump(mode="json"))
        self.log("SPEC_SAVED", str(path))

    def save_pass(self, image_id: str, artifact_path: str, output: str) -> None:
        """Save build_pass.json with the compiler output."""
        self._write(
            "build_pass.json",
            {
                "timestamp": _now(),
                "verdict": "PASS",
                "image_id": image_id,
                "artifact_path": artifact_path,
                "output": output,
            },
        )
        self.log("BUILD_PASSED", image_id)

    def save_fail(self, phase: BuildPhase, exit_code: int, output: str) -> None:
        """Save build_fail.json with the failing phase and tool output."""
        self._write(
            "build_fail.json",
            {
                "timestamp": _now(),
                "verdict": "FAIL",
                "phase": BuildPhase(phase).value,
                "exit_code": exit_code,
                "output": output,
            },
        )
        self.log("BUILD_FAILED", f"{BuildPhase(phase).value}: exit code {exit_code}")

    def finalize(self) -> Path:
        """Save build_log.json - the complete session log."""
        path = self._write("build_log.json", [asdict(entry) for entry in self._log])
        console.print(f"[green][RECORDER] Build log saved: {path}[/green]")
        return path
