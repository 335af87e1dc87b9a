from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ganttgen_web.domain.errors import GanttGenError
from ganttgen_web.services.events import EventEmitter, EventSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobOutcome:
    ok: bool
    value: Any = None
    error: Optional[str] = None
    exception: Optional[BaseException] = None


def dispatch(operation: str, fn: Callable[[], Any], sink: Optional[EventSink] = None) -> JobOutcome:
    """
    Error boundary around one public operation. Known failures become an error
    log event and a failed outcome; anything unexpected is logged with its
    traceback first. Nothing escapes to the caller.
    """
    events = EventEmitter(sink)
    try:
        value = fn()
    except GanttGenError as e:
        events.error(str(e))
        return JobOutcome(ok=False, error=str(e), exception=e)
    except Exception as e:  # noqa: BLE001
        logger.exception("Unexpected failure during %s", operation)
        message = f"Unexpected failure during {operation}: {e}"
        events.error(message)
        return JobOutcome(ok=False, error=message, exception=e)

    return JobOutcome(ok=True, value=value)
