from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from ganttgen_web.domain.models import OutputLine
from ganttgen_web.domain.platform import HostPlatform
from ganttgen_web.repositories.install_repository import InstallRepository


# -----------------------------
# Test doubles
# -----------------------------
@dataclass
class FakeCompletedProcess:
    returncode: int
    stdout: str = ""
    stderr: str = ""


class FakeRunningProcess:
    def __init__(self, lines: Sequence[OutputLine], returncode: int):
        self._lines = list(lines)
        self._returncode = returncode
        self.killed = False

    def lines(self, cancel=None):
        for line in self._lines:
            if cancel is not None and cancel.cancelled:
                self.killed = True
                return
            yield line
        if cancel is not None and cancel.cancelled:
            self.killed = True

    def kill(self) -> None:
        self.killed = True

    def wait(self) -> int:
        return -9 if self.killed else self._returncode


class FakeProcessRunner:
    """Scripted stand-in for ProcessRunner. Records every call."""

    def __init__(self) -> None:
        self.runs: List[Tuple[List[str], Dict]] = []
        self.spawns: List[Tuple[List[str], Dict]] = []
        self._processes: List[FakeRunningProcess] = []
        self.run_handler: Callable[[List[str]], FakeCompletedProcess] = (
            lambda argv: FakeCompletedProcess(returncode=0, stdout="v1.0.0\n")
        )

    def queue_process(
        self,
        stdout: Sequence[str] = (),
        stderr: Sequence[str] = (),
        returncode: int = 0,
        lines: Optional[Sequence[OutputLine]] = None,
    ) -> None:
        if lines is None:
            lines = [OutputLine("stdout", t) for t in stdout] + [OutputLine("stderr", t) for t in stderr]
        self._processes.append(FakeRunningProcess(lines, returncode))

    def queue_running(self, process: FakeRunningProcess) -> None:
        self._processes.append(process)

    def run(self, argv, *, cwd=None, env=None, timeout=None):
        argv = [str(a) for a in argv]
        self.runs.append((argv, {"cwd": cwd, "env": env, "timeout": timeout}))
        return self.run_handler(argv)

    def spawn(self, argv, *, cwd=None, env=None):
        argv = [str(a) for a in argv]
        self.spawns.append((argv, {"cwd": cwd, "env": env}))
        if not self._processes:
            return FakeRunningProcess([], 0)
        return self._processes.pop(0)


class RecordingSink:
    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict]] = []

    def emit(self, event: str, payload: Dict) -> None:
        self.events.append((event, payload))

    def named(self, event: str) -> List[Dict]:
        return [p for name, p in self.events if name == event]


# -----------------------------
# Helpers
# -----------------------------
@dataclass
class Layout:
    root: Path
    app_data: Path
    resources: Path
    scripts: Path
    cwd: Path

    def add_private_runtime(self) -> Path:
        node = self.app_data / "node" / "node"
        node.parent.mkdir(parents=True, exist_ok=True)
        node.write_text("", encoding="utf-8")
        (node.parent / "npm").write_text("", encoding="utf-8")
        return node

    def add_dependencies(self) -> Path:
        marker = self.app_data / "dependencies" / "node_modules" / "exceljs"
        marker.mkdir(parents=True, exist_ok=True)
        return marker

    def add_browser(self) -> Path:
        browsers = self.app_data / "dependencies" / "playwright-browsers"
        browsers.mkdir(parents=True, exist_ok=True)
        return browsers

    def repo(self, **kwargs) -> InstallRepository:
        kwargs.setdefault("platform", HostPlatform("linux"))
        kwargs.setdefault("cwd", self.cwd)
        kwargs.setdefault("env", {})
        kwargs.setdefault("home", self.root / "home")
        kwargs.setdefault("well_known_dirs", [])
        return InstallRepository(app_data_dir=self.app_data, resource_dir=self.resources, **kwargs)


@pytest.fixture
def layout(tmp_path: Path) -> Layout:
    resources = tmp_path / "resources"
    scripts = resources / "scripts"
    scripts.mkdir(parents=True)
    (scripts / "build.js").write_text("// build\n", encoding="utf-8")

    cwd = tmp_path / "work" / "cwd"
    cwd.mkdir(parents=True)

    return Layout(root=tmp_path, app_data=tmp_path / "appdata", resources=resources, scripts=scripts, cwd=cwd)


@pytest.fixture
def runner() -> FakeProcessRunner:
    return FakeProcessRunner()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
