from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from ganttgen_web.domain.errors import GanttGenError, PathResolutionError
from ganttgen_web.domain.models import InstallLocation, PackageManager
from ganttgen_web.domain.platform import HostPlatform

ENTRY_SCRIPT = "build.js"
DEPENDENCY_MARKER = Path("node_modules") / "exceljs"

NODE_DIR_NAME = "node"
DEPENDENCIES_DIR_NAME = "dependencies"
BROWSERS_DIR_NAME = "playwright-browsers"

# Locates an executable by name via the shell (which/where). Returns None if not found.
PathProbe = Callable[[str], Optional[Path]]


def shell_path_probe(runner, platform: HostPlatform) -> PathProbe:
    """which/where, run as an external process. First reported hit wins."""

    def _probe(name: str) -> Optional[Path]:
        try:
            proc = runner.run(platform.path_probe(name), timeout=10)
        except GanttGenError:
            return None
        if proc.returncode != 0:
            return None
        for line in (proc.stdout or "").splitlines():
            line = line.strip()
            if line:
                return Path(line)
        return None

    return _probe


def _version_key(p: Path) -> tuple:
    nums = re.findall(r"\d+", p.name)
    return tuple(int(n) for n in nums)


def _dedupe(paths: List[Path]) -> List[Path]:
    seen = set()
    out: List[Path] = []
    for p in paths:
        key = str(p)
        if key not in seen:
            seen.add(key)
            out.append(p)
    return out


def well_known_bin_dirs(platform: HostPlatform, env: Mapping[str, str], home: Path) -> List[Path]:
    """
    Directories where OS packages, installers and version managers usually put
    node. Order matters: first existing candidate wins.
    """
    dirs: List[Path] = []

    if platform.is_windows:
        program_files = env.get("ProgramFiles") or r"C:\Program Files"
        program_files_x86 = env.get("ProgramFiles(x86)") or r"C:\Program Files (x86)"
        dirs.append(Path(program_files) / "nodejs")
        dirs.append(Path(program_files_x86) / "nodejs")
        local_app = env.get("LocalAppData")
        if local_app:
            dirs.append(Path(local_app) / "Programs" / "nodejs")
        nvm_symlink = env.get("NVM_SYMLINK")
        if nvm_symlink:
            dirs.append(Path(nvm_symlink))
        program_data = env.get("ProgramData") or r"C:\ProgramData"
        dirs.append(Path(program_data) / "chocolatey" / "bin")
        return dirs

    if platform.system == "darwin":
        dirs.append(Path("/opt/homebrew/bin"))
    dirs.append(Path("/usr/local/bin"))
    dirs.append(Path("/usr/bin"))
    dirs.append(home / ".volta" / "bin")

    # nvm: newest installed version first
    nvm_root = Path(env.get("NVM_DIR") or home / ".nvm") / "versions" / "node"
    if nvm_root.is_dir():
        versions = sorted((p for p in nvm_root.iterdir() if p.is_dir()), key=_version_key, reverse=True)
        dirs.extend(v / "bin" for v in versions)

    return dirs


@dataclass
class InstallRepository:
    """
    Repository pattern: encapsulates where the runtime, npm, the job scripts and
    the installed dependencies live. Every lookup is an ordered list of
    candidates and the first one that passes wins; nothing here installs or
    writes anything.
    """
    app_data_dir: Path
    resource_dir: Path
    platform: HostPlatform = field(default_factory=HostPlatform.current)
    node_override: Optional[Path] = None
    cwd: Optional[Path] = None
    env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    home: Optional[Path] = None
    well_known_dirs: Optional[List[Path]] = None
    path_probe: Optional[PathProbe] = None

    # -----------------------------
    # Private install layout
    # -----------------------------
    @property
    def node_install_dir(self) -> Path:
        return self.app_data_dir / NODE_DIR_NAME

    @property
    def dependencies_dir(self) -> Path:
        return self.app_data_dir / DEPENDENCIES_DIR_NAME

    @property
    def browser_install_dir(self) -> Path:
        return self.dependencies_dir / BROWSERS_DIR_NAME

    @property
    def private_runtime(self) -> Path:
        return self.node_install_dir / self.platform.node_binary

    @property
    def private_npm_wrapper(self) -> Path:
        return self.node_install_dir / self.platform.npm_wrapper

    def _bin_dirs(self) -> List[Path]:
        if self.well_known_dirs is not None:
            return list(self.well_known_dirs)
        return well_known_bin_dirs(self.platform, self.env, self.home or Path.home())

    # -----------------------------
    # Scripts directory
    # -----------------------------
    def scripts_dir_candidates(self) -> List[Path]:
        cwd = self.cwd or Path.cwd()
        return [
            cwd.parent / "scripts",                                  # development checkout
            self.resource_dir / "scripts",                           # packaged resources
            self.resource_dir,                                       # flat layout
            self.resource_dir.parent.parent / "Resources" / "scripts",   # macOS .app bundle
        ]

    def scripts_dir(self) -> Path:
        candidates = self.scripts_dir_candidates()
        for c in candidates:
            if (c / ENTRY_SCRIPT).is_file():
                return c
        raise PathResolutionError(
            f"Build script ({ENTRY_SCRIPT})",
            checked=candidates,
            hint="Please ensure the app is properly installed.",
        )

    # -----------------------------
    # Runtime
    # -----------------------------
    def runtime_candidates(self) -> List[Path]:
        candidates = [self.private_runtime]
        if self.node_override is not None:
            candidates.append(self.node_override)
        candidates.extend(d / self.platform.node_binary for d in self._bin_dirs())
        return _dedupe(candidates)

    def runtime_path(self) -> Path:
        candidates = self.runtime_candidates()
        for c in candidates:
            if c.exists():
                return c

        if self.path_probe is not None:
            found = self.path_probe("node")
            if found is not None and found.exists():
                return found

        raise PathResolutionError(
            "Node.js runtime",
            checked=candidates,
            hint="Node.js not installed. Please click Install to download it.",
        )

    # -----------------------------
    # Package manager
    # -----------------------------
    def _npm_entry_candidates(self, runtime: Path) -> List[Path]:
        bin_dir = runtime.parent
        return _dedupe([
            bin_dir / self.platform.npm_cli_relpath,
            bin_dir.parent / "lib" / "node_modules" / "npm" / "bin" / "npm-cli.js",
            bin_dir / "node_modules" / "npm" / "bin" / "npm-cli.js",
        ])

    def package_manager(self, runtime: Optional[Path] = None) -> PackageManager:
        if runtime is None:
            try:
                runtime = self.runtime_path()
            except PathResolutionError:
                runtime = None

        wrappers: List[Path] = []
        if runtime is not None:
            wrappers.append(runtime.parent / self.platform.npm_wrapper)
        wrappers.append(self.private_npm_wrapper)
        wrappers.extend(d / self.platform.npm_wrapper for d in self._bin_dirs())
        wrappers = _dedupe(wrappers)

        for w in wrappers:
            if w.exists():
                return PackageManager(executable=w)

        if self.path_probe is not None:
            found = self.path_probe(self.platform.npm_wrapper)
            if found is not None and found.exists():
                return PackageManager(executable=found)

        entries = self._npm_entry_candidates(runtime) if runtime is not None else []
        for script in entries:
            if script.is_file():
                return PackageManager(executable=runtime, entry_script=script)

        raise PathResolutionError(
            "npm",
            checked=wrappers + entries,
            hint="Please install Node.js.",
        )

    # -----------------------------
    # Dependencies
    # -----------------------------
    def dependency_root_candidates(self) -> List[Path]:
        candidates = [self.dependencies_dir]
        try:
            candidates.append(self.scripts_dir())
        except PathResolutionError:
            pass
        return candidates

    def dependencies_installed(self) -> bool:
        return (self.dependencies_dir / DEPENDENCY_MARKER).exists()

    def dependency_root(self) -> Path:
        candidates = self.dependency_root_candidates()
        for c in candidates:
            if (c / DEPENDENCY_MARKER).exists():
                return c
        raise PathResolutionError(
            "Dependencies",
            checked=[c / DEPENDENCY_MARKER for c in candidates],
            hint="Dependencies not installed. Please use the Setup button to install required dependencies.",
        )

    def browser_root(self) -> Optional[Path]:
        if self.browser_install_dir.exists():
            return self.browser_install_dir

        try:
            scripts = self.scripts_dir()
        except PathResolutionError:
            return None
        bundled = scripts.parent / "node_modules" / ".playwright"
        if bundled.exists():
            return bundled
        return None

    # -----------------------------
    # Snapshot
    # -----------------------------
    def locate(self) -> InstallLocation:
        """Resolve everything; anything that cannot be found is None."""

        def _try(fn):
            try:
                return fn()
            except GanttGenError:
                return None

        runtime = _try(self.runtime_path)
        return InstallLocation(
            scripts_dir=_try(self.scripts_dir),
            runtime=runtime,
            package_manager=_try(lambda: self.package_manager(runtime)),
            dependency_root=_try(self.dependency_root),
            browser_root=self.browser_root(),
        )
