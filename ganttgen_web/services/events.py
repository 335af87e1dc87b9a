from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ganttgen_web.domain.models import InstallProgress, LogEvent, ProgressEvent

logger = logging.getLogger(__name__)

APP_LOG = "app-log"
GENERATION_PROGRESS = "generation-progress"
INSTALL_PROGRESS = "install-progress"

SOURCE_LOCAL = "local"
SOURCE_SUBPROCESS = "subprocess"

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class EventSink(Protocol):
    def emit(self, event: str, payload: Dict[str, Any]) -> None: ...


class NullEventSink:
    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        return None


class CollectingEventSink:
    """Keeps every emission in order. Used by the web layer to return the event stream."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    def named(self, event: str) -> List[Dict[str, Any]]:
        return [p for name, p in self.events if name == event]

    def to_list(self) -> List[Dict[str, Any]]:
        return [{"event": name, "payload": payload} for name, payload in self.events]


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


class EventEmitter:
    """
    Wraps a sink so delivery is fire-and-forget: a broken or missing sink is
    logged and otherwise ignored. Log events are mirrored to `logging`.
    """

    def __init__(self, sink: Optional[EventSink] = None):
        self._sink = sink

    def _deliver(self, event: str, payload: Dict[str, Any]) -> None:
        if self._sink is None:
            return
        try:
            self._sink.emit(event, payload)
        except Exception:  # noqa: BLE001
            logger.warning("Event sink rejected %s event", event, exc_info=True)

    def log(self, level: str, message: str, source: str = SOURCE_LOCAL) -> LogEvent:
        entry = LogEvent(level=level, source=source, message=message, timestamp=_timestamp())
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "[%s] %s", source, message)
        self._deliver(APP_LOG, entry.to_dict())
        return entry

    def debug(self, message: str, source: str = SOURCE_LOCAL) -> LogEvent:
        return self.log("debug", message, source)

    def info(self, message: str, source: str = SOURCE_LOCAL) -> LogEvent:
        return self.log("info", message, source)

    def warn(self, message: str, source: str = SOURCE_LOCAL) -> LogEvent:
        return self.log("warn", message, source)

    def error(self, message: str, source: str = SOURCE_LOCAL) -> LogEvent:
        return self.log("error", message, source)

    def progress(self, event: ProgressEvent) -> None:
        self._deliver(GENERATION_PROGRESS, event.to_dict())

    def install(
        self,
        stage: str,
        message: str,
        progress: int,
        *,
        complete: bool = False,
        error: Optional[str] = None,
    ) -> InstallProgress:
        update = InstallProgress(stage=stage, message=message, progress=progress, complete=complete, error=error)
        self._deliver(INSTALL_PROGRESS, update.to_dict())
        return update


class ProgressTracker:
    """
    Emits generation progress for one job. Values are clamped to 0..100 and
    never go backwards, whatever order the heuristic cues show up in.
    """

    def __init__(self, emitter: EventEmitter):
        self._emitter = emitter
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def advance(self, step: str, progress: int) -> ProgressEvent:
        value = max(self._current, min(100, max(0, int(progress))))
        self._current = value
        event = ProgressEvent(step=step, progress=value)
        self._emitter.progress(event)
        return event
