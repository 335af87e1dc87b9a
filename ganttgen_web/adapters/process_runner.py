from __future__ import annotations

import logging
import queue
import subprocess
import sys
import threading
from pathlib import Path
from typing import IO, Iterator, Mapping, Optional, Sequence, Union

from ganttgen_web.domain.errors import ProcessExitError, ProcessSpawnError
from ganttgen_web.domain.models import OutputLine

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# How often the line pump wakes up to look at the cancel token
_POLL_SECONDS = 0.1


def _creationflags_kwargs() -> dict:
    # Keep console windows from flashing up for every child on Windows
    if sys.platform.startswith("win"):
        return {"creationflags": getattr(subprocess, "CREATE_NO_WINDOW", 0)}
    return {}


class CancelToken:
    """Set from any thread; the running job kills its child on the next poll."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def _pump(pipe: IO[str], stream: str, sink: "queue.Queue[Optional[OutputLine]]") -> None:
    try:
        for raw in iter(pipe.readline, ""):
            sink.put(OutputLine(stream=stream, text=raw.rstrip("\r\n")))
    finally:
        pipe.close()
        sink.put(None)


class RunningProcess:
    """
    A spawned child whose stdout and stderr are drained by two reader threads
    into one queue, so neither pipe can fill up and block the child while the
    other is being read. Lines come out in the order they were read.
    """

    def __init__(self, popen: subprocess.Popen):
        self._popen = popen
        self._queue: "queue.Queue[Optional[OutputLine]]" = queue.Queue()
        self._threads: list[threading.Thread] = []
        self.killed = False

        for pipe, stream in ((popen.stdout, "stdout"), (popen.stderr, "stderr")):
            if pipe is None:
                continue
            t = threading.Thread(target=_pump, args=(pipe, stream, self._queue), daemon=True)
            t.start()
            self._threads.append(t)

    @property
    def pid(self) -> int:
        return self._popen.pid

    def lines(self, cancel: Optional[CancelToken] = None) -> Iterator[OutputLine]:
        open_streams = len(self._threads)
        while open_streams:
            try:
                item = self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                if cancel is not None and cancel.cancelled and not self.killed:
                    self.kill()
                continue

            if item is None:
                open_streams -= 1
                continue
            yield item

            if cancel is not None and cancel.cancelled and not self.killed:
                self.kill()

    def kill(self) -> None:
        logger.info("Killing child process pid=%s", self._popen.pid)
        self.killed = True
        try:
            self._popen.kill()
        except OSError:
            # Already gone
            logger.debug("Child pid=%s had already exited", self._popen.pid)

    def wait(self) -> int:
        code = self._popen.wait()
        for t in self._threads:
            t.join()
        return code


class ProcessRunner:
    """Thin seam over subprocess so services can be tested with a fake."""

    def run(
        self,
        argv: Sequence[PathLike],
        *,
        cwd: Optional[PathLike] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> "subprocess.CompletedProcess[str]":
        cmd = [str(a) for a in argv]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
                **_creationflags_kwargs(),
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessExitError(cmd[0], -1, f"Timed out after {timeout} seconds.") from e
        except OSError as e:
            raise ProcessSpawnError(cmd[0], e) from e

    def spawn(
        self,
        argv: Sequence[PathLike],
        *,
        cwd: Optional[PathLike] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> RunningProcess:
        cmd = [str(a) for a in argv]
        logger.debug("Spawning: %s", " ".join(cmd))
        try:
            popen = subprocess.Popen(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                **_creationflags_kwargs(),
            )
        except OSError as e:
            raise ProcessSpawnError(cmd[0], e) from e
        return RunningProcess(popen)
