from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional


class GanttGenError(RuntimeError):
    """Base for every failure this layer reports back to its caller."""


class PathResolutionError(GanttGenError):
    """Every candidate location for a resource was checked and none matched."""

    def __init__(self, resource: str, checked: Iterable[Path] = (), hint: str = ""):
        self.resource = resource
        self.checked = [Path(p) for p in checked]
        self.hint = hint

        lines = [f"{resource} not found."]
        if self.checked:
            lines.append("Checked locations:")
            lines.extend(f"  - {p}" for p in self.checked)
        if hint:
            lines.append(hint)
        super().__init__("\n".join(lines))


class InstallError(GanttGenError):
    """An install step failed. `step` names the step for the UI."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"{step} failed: {message}")


class DownloadError(InstallError):
    def __init__(self, message: str):
        super().__init__("Download", message)


class ExtractionError(InstallError):
    def __init__(self, message: str):
        super().__init__("Extraction", message)


class VerificationError(InstallError):
    def __init__(self, message: str):
        super().__init__("Verification", message)


class ProcessSpawnError(GanttGenError):
    def __init__(self, argv0: str, cause: Optional[BaseException] = None):
        self.argv0 = argv0
        reason = f": {cause}" if cause else "."
        super().__init__(f"Failed to start process {argv0}{reason}")


class ProcessExitError(GanttGenError):
    """Child exited nonzero. `detail` is the captured diagnostic text, verbatim."""

    def __init__(self, what: str, exit_code: int, detail: str):
        self.what = what
        self.exit_code = exit_code
        self.detail = detail
        super().__init__(f"{what} failed (exit code {exit_code}):\n{detail}")


class ValidationError(GanttGenError):
    pass


class PreconditionError(GanttGenError):
    pass


class InstallInProgressError(PreconditionError):
    def __init__(self, target: Path):
        self.target = target
        super().__init__(f"Another installation is already running for {target}. Wait for it to finish and try again.")


class JobCancelledError(GanttGenError):
    pass
