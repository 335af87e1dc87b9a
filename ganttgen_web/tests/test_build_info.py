from __future__ import annotations

from datetime import datetime
from pathlib import Path

from ganttgen_web.domain.errors import ProcessSpawnError
from ganttgen_web.services.build_info import BuildInfoService

from conftest import FakeCompletedProcess


def git_handler(commit="1a2b3c4", branch="main", tagged=False):
    def handler(argv):
        args = argv[1:]
        if args[:2] == ["rev-parse", "--short=7"]:
            return FakeCompletedProcess(0, stdout=commit + "\n")
        if args[:2] == ["rev-parse", "--abbrev-ref"]:
            return FakeCompletedProcess(0, stdout=branch + "\n")
        if args[0] == "describe":
            return FakeCompletedProcess(0, stdout="v1.2.0\n") if tagged else FakeCompletedProcess(128, stderr="no tag")
        raise AssertionError(f"unexpected git call {argv}")

    return handler


def fixed_now():
    return datetime(2025, 3, 4, 5, 6, 7)


def test_computed_from_git(runner, tmp_path: Path):
    runner.run_handler = git_handler(tagged=True)
    info = BuildInfoService(runner=runner, repo_dir=tmp_path, now=fixed_now).build_info()

    assert info.datetime == "20250304_050607"
    assert info.commit == "1a2b3c4"
    assert info.commit_short == "1a2b3c4"
    assert info.branch == "main"
    assert info.is_release is True
    assert all(kwargs["cwd"] == tmp_path for _, kwargs in runner.runs)


def test_overrides_win(runner, tmp_path: Path):
    runner.run_handler = git_handler(tagged=True)
    service = BuildInfoService(
        runner=runner,
        repo_dir=tmp_path,
        datetime_override="20240101_000000",
        commit_override="0123456789abcdef",
        release_override=False,
        now=fixed_now,
    )

    info = service.build_info()

    assert info.datetime == "20240101_000000"
    assert info.commit == "0123456789abcdef"
    assert info.commit_short == "0123456"
    assert info.is_release is False
    assert [argv[1:3] for argv, _ in runner.runs] == [["rev-parse", "--abbrev-ref"]]


def test_no_git_degrades_to_unknown(runner, tmp_path: Path):
    def handler(argv):
        raise ProcessSpawnError("git")

    runner.run_handler = handler
    info = BuildInfoService(runner=runner, repo_dir=tmp_path, now=fixed_now).build_info()

    assert (info.commit, info.commit_short, info.branch, info.is_release) == ("unknown", "unknown", "unknown", False)


def test_result_is_cached(runner, tmp_path: Path):
    runner.run_handler = git_handler()
    service = BuildInfoService(runner=runner, repo_dir=tmp_path, now=fixed_now)

    first = service.build_info()
    calls = len(runner.runs)

    assert service.build_info() is first
    assert len(runner.runs) == calls
