from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from typing import List, Optional

from ganttgen_web.adapters.process_runner import ProcessRunner
from ganttgen_web.domain.errors import GanttGenError, InstallError, PreconditionError, ProcessExitError
from ganttgen_web.repositories.install_repository import InstallRepository
from ganttgen_web.services.environment import with_runtime_on_path
from ganttgen_web.services.events import EventEmitter, EventSink
from ganttgen_web.services.install_lock import single_flight
from ganttgen_web.services.markers import is_install_progress_line

logger = logging.getLogger(__name__)

MANIFEST = "package.json"
LOCK_FILE = "package-lock.json"

INSTALL_START_PROGRESS = 20
INSTALL_MAX_PROGRESS = 90
INSTALL_STEP = 10


@dataclass
class DependencyInstaller:
    """
    Service layer: copies the job's manifest into the private dependency root
    and runs `npm install` there, turning npm's output into install progress.
    """
    repo: InstallRepository
    runner: ProcessRunner

    def install(self, sink: Optional[EventSink] = None) -> bool:
        events = EventEmitter(sink)

        with single_flight(self.repo.dependencies_dir):
            try:
                self._install(events)
            except GanttGenError as e:
                events.install("Error", "Installation failed", 100, complete=True, error=getattr(e, "detail", str(e)))
                raise

        events.install(
            "Complete",
            "Dependencies installed. Install the internal browser to enable PNG export.",
            100,
            complete=True,
        )
        return True

    def _install(self, events: EventEmitter) -> None:
        events.install("Preparing", "Setting up dependency directory...", 5)

        # Preconditions first: nothing is created if the bundle has no manifest
        scripts_dir = self.repo.scripts_dir()
        manifest = scripts_dir / MANIFEST
        if not manifest.is_file():
            raise PreconditionError(
                f"{MANIFEST} not found at {manifest}. The application bundle is incomplete; please reinstall."
            )

        deps_dir = self.repo.dependencies_dir
        events.install("Copying", "Copying package files...", 10)
        try:
            deps_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(manifest, deps_dir / MANIFEST)
            lock_file = scripts_dir / LOCK_FILE
            if lock_file.is_file():
                shutil.copyfile(lock_file, deps_dir / LOCK_FILE)
        except OSError as e:
            raise InstallError("Copy", f"Failed to copy package files into {deps_dir}: {e}") from e

        runtime = self.repo.runtime_path()
        npm = self.repo.package_manager(runtime)
        env = with_runtime_on_path(runtime, self.repo.platform.path_separator)

        events.install("Installing", "Installing dependencies (this may take a few minutes)...", INSTALL_START_PROGRESS)
        argv = npm.argv() + ["install", "--omit=dev"]
        events.debug(f"Running: {' '.join(argv)} (cwd={deps_dir})")

        proc = self.runner.spawn(argv, cwd=deps_dir, env=env)
        progress = INSTALL_START_PROGRESS
        error_lines: List[str] = []

        for line in proc.lines():
            if line.stream == "stdout":
                if is_install_progress_line(line.text):
                    progress = min(progress + INSTALL_STEP, INSTALL_MAX_PROGRESS)
                events.install("Installing", line.text, progress)
            else:
                logger.debug("[npm stderr] %s", line.text)
                if line.text and "WARN" not in line.text:
                    error_lines.append(line.text)

        code = proc.wait()
        if code != 0:
            detail = "\n".join(error_lines) if error_lines else "npm install failed"
            raise ProcessExitError("npm install", code, detail)

        events.info(f"Dependencies installed into {deps_dir}")
