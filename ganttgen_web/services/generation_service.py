from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ganttgen_web.adapters.process_runner import CancelToken, ProcessRunner
from ganttgen_web.domain.errors import (
    JobCancelledError,
    PathResolutionError,
    PreconditionError,
    ProcessExitError,
    ValidationError,
)
from ganttgen_web.domain.models import GenerationRequest, GenerationResult
from ganttgen_web.repositories.install_repository import ENTRY_SCRIPT, InstallRepository
from ganttgen_web.services.environment import job_environment
from ganttgen_web.services.events import EventEmitter, EventSink, ProgressTracker, SOURCE_SUBPROCESS
from ganttgen_web.services.markers import MarkerTable

logger = logging.getLogger(__name__)

INPUT_EXTENSIONS = ("json", "xlsx", "xls")


def validate_input_file(path: str) -> Path:
    p = Path(path) if path else None
    if p is None or not p.exists():
        raise ValidationError(f"File does not exist: {path}")

    extension = p.suffix.lstrip(".").lower()
    if extension not in INPUT_EXTENSIONS:
        raise ValidationError(f"Invalid file type: .{extension}. Expected .json, .xlsx or .xls")
    return p


def build_arguments(build_script: Path, request: GenerationRequest) -> List[str]:
    args = [
        str(build_script),
        "--input", request.input_path,
        "--palette", request.palette,
        "--view-mode", request.view_mode,
    ]
    if request.output_path:
        args += ["--output", request.output_path]

    args.append("--png" if request.export_png else "--no-png")

    if request.png_drop_shadow:
        args.append("--drop-shadow")
    return args


@dataclass
class GenerationService:
    """
    Service layer: runs the chart build script for one request and turns its
    output into progress/log events plus a GenerationResult.
    """
    repo: InstallRepository
    runner: ProcessRunner
    markers: MarkerTable = field(default_factory=MarkerTable)

    def validate(self, path: str, sink: Optional[EventSink] = None) -> bool:
        events = EventEmitter(sink)
        p = validate_input_file(path)
        events.debug(f"File validated: {p}")
        return True

    def generate(
        self,
        request: GenerationRequest,
        sink: Optional[EventSink] = None,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> GenerationResult:
        events = EventEmitter(sink)
        tracker = ProgressTracker(events)

        events.info("Starting Gantt chart generation...")
        events.debug(
            f"Options: input={request.input_path}, palette={request.palette}, "
            f"export_png={request.export_png}, view_mode={request.view_mode}"
        )

        # Validate before anything is spawned
        validate_input_file(request.input_path)

        scripts_dir = self.repo.scripts_dir()
        events.debug(f"Scripts directory: {scripts_dir}")
        build_script = scripts_dir / ENTRY_SCRIPT
        if not build_script.is_file():
            raise PathResolutionError("Build script", checked=[build_script])

        tracker.advance("Starting generation...", 10)

        node = self.repo.runtime_path()
        events.info(f"Using Node.js: {node}")

        try:
            dependency_root: Optional[Path] = self.repo.dependency_root()
        except PathResolutionError as e:
            dependency_root = None
            events.warn(str(e))
        browser_root = self.repo.browser_root()

        if request.export_png and browser_root is None:
            raise PreconditionError(
                "PNG export needs the internal browser runtime, which is not installed. "
                "Install it from Setup, or turn off PNG export."
            )

        args = build_arguments(build_script, request)
        env = job_environment(dependency_root, browser_root)

        tracker.advance("Running build script...", 30)
        events.debug(f"Running: {node} {' '.join(args)}")

        proc = self.runner.spawn([str(node)] + args, cwd=scripts_dir.parent, env=env)

        output_lines: List[str] = []
        error_lines: List[str] = []
        html_path: Optional[str] = None
        png_path: Optional[str] = None

        for line in proc.lines(cancel):
            text = line.text
            if line.stream == "stderr":
                error_lines.append(text)
                if text.strip():
                    events.warn(text, SOURCE_SUBPROCESS)
                continue

            output_lines.append(text)
            events.debug(text, SOURCE_SUBPROCESS)

            match = self.markers.classify(text)
            if match.artifact_kind == "html":
                html_path = match.artifact_path
                events.info(f"HTML generated: {html_path}", SOURCE_SUBPROCESS)
            elif match.artifact_kind == "png":
                png_path = match.artifact_path
                events.info(f"PNG generated: {png_path}", SOURCE_SUBPROCESS)

            if match.step is not None:
                tracker.advance(match.step, match.progress)

        code = proc.wait()

        # Cancelled only if the child was actually stopped
        if proc.killed:
            events.warn("Generation cancelled; build process was stopped.")
            tracker.advance("Cancelled", 100)
            raise JobCancelledError("Generation was cancelled before the build script finished.")

        events.info(f"Build process exited with status: {code}")
        tracker.advance("Complete" if code == 0 else "Failed", 100)

        if code != 0:
            detail = "\n".join(error_lines) if error_lines else "\n".join(output_lines)
            raise ProcessExitError("Generation", code, detail)

        if html_path is None:
            html_path = self.markers.scan(output_lines, "html")
        if png_path is None and request.export_png:
            png_path = self.markers.scan(output_lines, "png")

        return GenerationResult(
            success=True,
            html_path=html_path,
            png_path=png_path,
            message="\n".join(output_lines),
        )
