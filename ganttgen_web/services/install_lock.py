from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

from ganttgen_web.domain.errors import InstallInProgressError

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_locks: Dict[str, threading.Lock] = {}


def _lock_for(target: Path) -> threading.Lock:
    key = str(target.resolve())
    with _registry_lock:
        lock = _locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _locks[key] = lock
        return lock


@contextmanager
def single_flight(target: Path) -> Iterator[None]:
    """
    At most one install per target directory in this process. A second caller
    fails fast instead of queueing behind the first.
    """
    lock = _lock_for(target)
    if not lock.acquire(blocking=False):
        raise InstallInProgressError(target)
    logger.debug("Acquired install lock for %s", target)
    try:
        yield
    finally:
        lock.release()
        logger.debug("Released install lock for %s", target)
