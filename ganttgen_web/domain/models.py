######## models.py
########

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ganttgen_web.domain.errors import ValidationError


def _jsonable(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(v) for v in obj]
    return obj


def _text_field(data: Dict[str, Any], name: str) -> Optional[str]:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Field '{name}' must be a string")
    return value.strip() or None


def _flag_field(data: Dict[str, Any], name: str) -> bool:
    # Only true, "true", "1" or "yes" switch a flag on
    value = data.get(name, False)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    if value is None:
        return False
    raise ValidationError(f"Field '{name}' must be a boolean")


@dataclass(frozen=True)
class PackageManager:
    """
    How to invoke npm. Either a real executable/wrapper, or the runtime itself
    pointed at npm's entry script when no wrapper could be found.
    """
    executable: Path
    entry_script: Optional[Path] = None

    def argv(self) -> List[str]:
        if self.entry_script is not None:
            return [str(self.executable), str(self.entry_script)]
        return [str(self.executable)]

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class InstallLocation:
    scripts_dir: Optional[Path]
    runtime: Optional[Path]
    package_manager: Optional[PackageManager]
    dependency_root: Optional[Path]
    browser_root: Optional[Path]

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class DependencyStatus:
    node_available: bool = False
    node_version: Optional[str] = None
    node_path: Optional[str] = None
    npm_available: bool = False
    npm_version: Optional[str] = None
    dependencies_installed: bool = False
    dependencies_path: Optional[str] = None
    scripts_path: Optional[str] = None
    browser_installed: bool = False
    browser_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GenerationRequest:
    input_path: str
    palette: str
    view_mode: str
    output_path: Optional[str] = None
    export_png: bool = False
    png_drop_shadow: bool = False

    @staticmethod
    def from_dict(data: Any) -> "GenerationRequest":
        if not isinstance(data, dict):
            raise ValidationError("Generation request must be a JSON object")
        return GenerationRequest(
            input_path=_text_field(data, "input_path") or "",
            palette=_text_field(data, "palette") or "alternating",
            view_mode=_text_field(data, "view_mode") or "weeks",
            output_path=_text_field(data, "output_path"),
            export_png=_flag_field(data, "export_png"),
            png_drop_shadow=_flag_field(data, "png_drop_shadow"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GenerationResult:
    success: bool
    html_path: Optional[str]
    png_path: Optional[str]
    message: str                # full stdout transcript, in read order

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProgressEvent:
    step: str
    progress: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class LogEvent:
    level: str                  # "debug" | "info" | "warn" | "error"
    source: str                 # "local" | "subprocess"
    message: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class InstallProgress:
    stage: str
    message: str
    progress: int
    complete: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BuildInfo:
    datetime: str
    commit: str
    commit_short: str
    branch: str
    is_release: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OutputLine:
    """One line read from a child process, tagged with the pipe it came from."""
    stream: str                 # "stdout" | "stderr"
    text: str

