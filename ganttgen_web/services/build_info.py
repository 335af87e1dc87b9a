from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from ganttgen_web.adapters.process_runner import ProcessRunner
from ganttgen_web.domain.errors import GanttGenError
from ganttgen_web.domain.models import BuildInfo

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"
DATETIME_FORMAT = "%Y%m%d_%H%M%S"
GIT_TIMEOUT_SECONDS = 10


@dataclass
class BuildInfoService:
    """
    Build metadata for the About box. Explicit overrides win; otherwise it is
    read from git in `repo_dir` once and cached. No git means "unknown".
    """
    runner: ProcessRunner
    repo_dir: Path
    datetime_override: Optional[str] = None
    commit_override: Optional[str] = None
    release_override: Optional[bool] = None
    now: Callable[[], datetime] = datetime.now
    _cached: Optional[BuildInfo] = field(default=None, init=False, repr=False)

    def _git(self, args: List[str]) -> Optional[str]:
        try:
            proc = self.runner.run(["git"] + args, cwd=self.repo_dir, timeout=GIT_TIMEOUT_SECONDS)
        except GanttGenError as e:
            logger.debug("git %s unavailable: %s", " ".join(args), e)
            return None
        if proc.returncode != 0:
            return None
        return (proc.stdout or "").strip() or None

    def build_info(self) -> BuildInfo:
        if self._cached is not None:
            return self._cached

        stamp = self.datetime_override or self.now().strftime(DATETIME_FORMAT)
        commit = self.commit_override or self._git(["rev-parse", "--short=7", "HEAD"]) or UNKNOWN
        branch = self._git(["rev-parse", "--abbrev-ref", "HEAD"]) or UNKNOWN

        if self.release_override is not None:
            is_release = self.release_override
        else:
            # a release is a commit that carries a tag
            is_release = self._git(["describe", "--tags", "--exact-match", "HEAD"]) is not None

        self._cached = BuildInfo(
            datetime=stamp,
            commit=commit,
            commit_short=commit[:7],
            branch=branch,
            is_release=is_release,
        )
        return self._cached
