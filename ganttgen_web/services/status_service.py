from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ganttgen_web.adapters.process_runner import ProcessRunner
from ganttgen_web.domain.errors import GanttGenError
from ganttgen_web.domain.models import DependencyStatus
from ganttgen_web.repositories.install_repository import InstallRepository

logger = logging.getLogger(__name__)

VERSION_TIMEOUT_SECONDS = 15


@dataclass
class StatusService:
    """
    Read-only view of what is installed. Each field degrades on its own; a
    missing runtime does not hide the scripts path and so on.
    """
    repo: InstallRepository
    runner: ProcessRunner

    def _version(self, argv: List[str]) -> Optional[str]:
        try:
            proc = self.runner.run(argv + ["--version"], timeout=VERSION_TIMEOUT_SECONDS)
        except GanttGenError as e:
            logger.debug("Version probe failed for %s: %s", argv[0], e)
            return None
        if proc.returncode != 0:
            return None
        return (proc.stdout or "").strip() or None

    def check(self) -> DependencyStatus:
        location = self.repo.locate()

        node_version = self._version([str(location.runtime)]) if location.runtime else None
        npm_version = self._version(location.package_manager.argv()) if location.package_manager else None

        browser = location.browser_root
        status = DependencyStatus(
            node_available=node_version is not None,
            node_version=node_version,
            node_path=str(location.runtime) if location.runtime else None,
            npm_available=npm_version is not None,
            npm_version=npm_version,
            dependencies_installed=self.repo.dependencies_installed(),
            dependencies_path=str(self.repo.dependencies_dir),
            scripts_path=str(location.scripts_dir) if location.scripts_dir else None,
            browser_installed=browser is not None,
            browser_path=str(browser) if browser else None,
        )
        logger.info(
            "Status: node=%s npm=%s dependencies=%s browser=%s",
            status.node_version, status.npm_version, status.dependencies_installed, status.browser_installed,
        )
        return status

    def dependencies_path(self) -> str:
        return str(self.repo.dependencies_dir)
