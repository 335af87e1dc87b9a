from .browser_installer import BrowserInstaller
from .build_info import BuildInfoService
from .dependency_installer import DependencyInstaller
from .events import CollectingEventSink, EventEmitter
from .generation_service import GenerationService
from .job_dispatcher import JobOutcome, dispatch
from .runtime_installer import RuntimeInstaller
from .script_service import ScriptService
from .status_service import StatusService

__all__ = [
    "BrowserInstaller",
    "BuildInfoService",
    "CollectingEventSink",
    "DependencyInstaller",
    "EventEmitter",
    "GenerationService",
    "JobOutcome",
    "dispatch",
    "RuntimeInstaller",
    "ScriptService",
    "StatusService",
]
