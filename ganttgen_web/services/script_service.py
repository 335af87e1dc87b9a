from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ganttgen_web.adapters.process_runner import ProcessRunner
from ganttgen_web.domain.errors import PathResolutionError, ProcessExitError, ValidationError
from ganttgen_web.repositories.install_repository import InstallRepository
from ganttgen_web.services.environment import job_environment
from ganttgen_web.services.events import EventEmitter, EventSink

logger = logging.getLogger(__name__)

PARSE_SCRIPT = "parse-file.js"
EXPORT_SCRIPT = "json_to_excel.js"

SCRIPT_TIMEOUT_SECONDS = 300


@dataclass
class ScriptService:
    """
    Service layer: the small one-shot helper scripts that ship next to build.js
    (spreadsheet parsing and JSON to Excel export). Output is captured whole.
    """
    repo: InstallRepository
    runner: ProcessRunner

    def _helper(self, name: str, label: str) -> Path:
        script = self.repo.scripts_dir() / name
        if not script.is_file():
            raise PathResolutionError(f"{label} script ({name})", checked=[script])
        return script

    def _dependency_root(self) -> Optional[Path]:
        try:
            return self.repo.dependency_root()
        except PathResolutionError:
            return None

    def parse_file(self, path: str, sink: Optional[EventSink] = None) -> str:
        events = EventEmitter(sink)
        p = Path(path)
        if not path or not p.exists():
            raise ValidationError(f"File does not exist: {path}")

        extension = p.suffix.lstrip(".").lower()

        if extension == "json":
            try:
                return p.read_text(encoding="utf-8")
            except OSError as e:
                raise ValidationError(f"Failed to read JSON file {path}: {e}") from e

        if extension not in ("xlsx", "xls"):
            raise ValidationError(f"Unsupported file type for parsing: .{extension}")

        script = self._helper(PARSE_SCRIPT, "Parse")
        node = self.repo.runtime_path()
        env = job_environment(self._dependency_root(), None)

        events.debug(f"Parsing Excel file: {path}")
        proc = self.runner.run(
            [str(node), str(script), path],
            cwd=script.parent.parent,
            env=env,
            timeout=SCRIPT_TIMEOUT_SECONDS,
        )
        if proc.returncode != 0:
            raise ProcessExitError("Excel parsing", proc.returncode, (proc.stderr or "").strip())
        return proc.stdout or ""

    def export_to_excel(self, json_path: str, excel_path: str, sink: Optional[EventSink] = None) -> bool:
        events = EventEmitter(sink)
        events.info(f"Exporting to Excel: {excel_path}")

        script = self._helper(EXPORT_SCRIPT, "Export")
        node = self.repo.runtime_path()
        env = job_environment(self._dependency_root(), None)

        argv = [str(node), str(script), "--input", json_path, "--output", excel_path]
        events.debug(f"Running: {' '.join(argv)}")

        proc = self.runner.run(argv, cwd=script.parent.parent, env=env, timeout=SCRIPT_TIMEOUT_SECONDS)
        if proc.returncode != 0:
            raise ProcessExitError("Excel export", proc.returncode, (proc.stderr or proc.stdout or "").strip())

        events.info(f"Successfully exported to: {excel_path}")
        return True
