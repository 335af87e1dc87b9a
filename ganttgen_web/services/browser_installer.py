from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ganttgen_web.adapters.process_runner import ProcessRunner
from ganttgen_web.domain.errors import GanttGenError, InstallError, PreconditionError, ProcessExitError
from ganttgen_web.repositories.install_repository import InstallRepository
from ganttgen_web.services.environment import BROWSERS_PATH_VAR, with_runtime_on_path
from ganttgen_web.services.events import EventEmitter, EventSink
from ganttgen_web.services.install_lock import single_flight

logger = logging.getLogger(__name__)

DEFAULT_FAILURE = "Failed to install Chromium runtime for PNG export"


@dataclass
class BrowserInstaller:
    """
    Service layer: puts Playwright's Chromium into the private dependency tree.
    Only the PNG export path of the generation job needs it.
    """
    repo: InstallRepository
    runner: ProcessRunner

    def install(self, sink: Optional[EventSink] = None) -> bool:
        events = EventEmitter(sink)

        if not self.repo.dependencies_installed():
            raise PreconditionError("Install dependencies first before installing the PNG browser runtime.")

        with single_flight(self.repo.dependencies_dir):
            try:
                self._install(events)
            except GanttGenError as e:
                events.install("Error", "Installation failed", 100, complete=True, error=getattr(e, "detail", str(e)))
                raise

        events.install("Complete", "PNG browser runtime installed successfully.", 100, complete=True)
        return True

    def _install(self, events: EventEmitter) -> None:
        existing = self.repo.browser_root()
        if existing is not None:
            events.debug(f"Browser runtime already present at {existing}")
            return

        deps_dir = self.repo.dependencies_dir
        browser_dir = self.repo.browser_install_dir
        runtime = self.repo.runtime_path()
        npm = self.repo.package_manager(runtime)

        events.install("Installing", "Installing Chromium runtime for PNG export...", 92)

        argv = npm.argv() + ["exec", "--yes", "--", "playwright", "install", "chromium"]
        if self.repo.platform.is_linux:
            # also pulls the shared libraries Chromium needs
            argv.append("--with-deps")

        env = with_runtime_on_path(runtime, self.repo.platform.path_separator)
        env[BROWSERS_PATH_VAR] = str(browser_dir)
        events.debug(f"Running: {' '.join(argv)} ({BROWSERS_PATH_VAR}={browser_dir})")

        proc = self.runner.spawn(argv, cwd=deps_dir, env=env)
        error_lines: List[str] = []
        for line in proc.lines():
            if line.stream == "stdout":
                logger.debug("[playwright] %s", line.text)
            elif line.text.strip():
                error_lines.append(line.text)

        code = proc.wait()
        if code != 0:
            detail = "\n".join(error_lines) if error_lines else DEFAULT_FAILURE
            raise ProcessExitError("Playwright browser install", code, detail)

        try:
            browser_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError("Browser install", f"Failed to create {browser_dir}: {e}") from e

        events.info(f"Chromium runtime installed into {browser_dir}")
