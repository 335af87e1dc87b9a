from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

from ganttgen_web.adapters.process_runner import CancelToken, ProcessRunner
from ganttgen_web.domain.errors import ProcessExitError, ProcessSpawnError


def _python(code: str):
    return [sys.executable, "-c", code]


def test_run_captures_output(tmp_path: Path):
    proc = ProcessRunner().run(_python("import sys; print('out'); print('err', file=sys.stderr)"), cwd=tmp_path)

    assert proc.returncode == 0
    assert proc.stdout.strip() == "out"
    assert proc.stderr.strip() == "err"


def test_run_timeout_becomes_exit_error():
    with pytest.raises(ProcessExitError) as exc:
        ProcessRunner().run(_python("import time; time.sleep(5)"), timeout=0.5)
    assert exc.value.exit_code == -1


def test_missing_executable_is_spawn_error(tmp_path: Path):
    missing = tmp_path / "no-such-binary"
    with pytest.raises(ProcessSpawnError):
        ProcessRunner().spawn([missing])
    with pytest.raises(ProcessSpawnError):
        ProcessRunner().run([missing])


def test_spawn_streams_both_pipes_in_order():
    code = (
        "import sys\n"
        "for i in range(5):\n"
        "    print(f'out {i}', flush=True)\n"
        "    print(f'err {i}', file=sys.stderr, flush=True)\n"
        "sys.exit(3)\n"
    )
    proc = ProcessRunner().spawn(_python(code))
    lines = list(proc.lines())

    assert proc.wait() == 3
    assert [l.text for l in lines if l.stream == "stdout"] == [f"out {i}" for i in range(5)]
    assert [l.text for l in lines if l.stream == "stderr"] == [f"err {i}" for i in range(5)]


def test_large_stderr_does_not_deadlock():
    # far more than a pipe buffer on stderr before anything on stdout
    code = (
        "import sys\n"
        "for i in range(4000):\n"
        "    sys.stderr.write('x' * 100 + '\\n')\n"
        "sys.stderr.flush()\n"
        "print('done')\n"
    )
    proc = ProcessRunner().spawn(_python(code))
    lines = list(proc.lines())

    assert proc.wait() == 0
    assert sum(1 for l in lines if l.stream == "stderr") == 4000
    assert any(l.stream == "stdout" and l.text == "done" for l in lines)


def test_cancel_kills_child():
    code = (
        "import time\n"
        "print('started', flush=True)\n"
        "time.sleep(30)\n"
        "print('never')\n"
    )
    cancel = CancelToken()
    proc = ProcessRunner().spawn(_python(code))

    seen = []
    for line in proc.lines(cancel):
        seen.append(line.text)
        cancel.cancel()

    assert proc.wait() != 0
    assert proc.killed is True
    assert seen == ["started"]


def test_cancel_from_another_thread():
    code = "import time\ntime.sleep(30)\n"
    cancel = CancelToken()
    proc = ProcessRunner().spawn(_python(code))

    timer = threading.Timer(0.3, cancel.cancel)
    timer.start()
    try:
        assert list(proc.lines(cancel)) == []
    finally:
        timer.cancel()

    assert proc.killed is True
    assert proc.wait() != 0
