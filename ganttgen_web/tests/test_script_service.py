from __future__ import annotations

import pytest

from ganttgen_web.domain.errors import PathResolutionError, ProcessExitError, ValidationError
from ganttgen_web.services.script_service import ScriptService

from conftest import FakeCompletedProcess


def make_service(layout, runner, scripts=("parse-file.js", "json_to_excel.js")) -> ScriptService:
    for name in scripts:
        (layout.scripts / name).write_text("// helper\n", encoding="utf-8")
    layout.add_private_runtime()
    return ScriptService(repo=layout.repo(), runner=runner)


def test_json_is_returned_verbatim(layout, runner):
    service = make_service(layout, runner)
    data = layout.root / "plan.json"
    data.write_text('{"tasks": []}', encoding="utf-8")

    assert service.parse_file(str(data)) == '{"tasks": []}'
    assert runner.runs == []


def test_missing_file(layout, runner):
    with pytest.raises(ValidationError) as exc:
        make_service(layout, runner).parse_file(str(layout.root / "gone.xlsx"))
    assert "File does not exist" in str(exc.value)


def test_unsupported_extension(layout, runner):
    doc = layout.root / "plan.csv"
    doc.write_text("a,b", encoding="utf-8")

    with pytest.raises(ValidationError):
        make_service(layout, runner).parse_file(str(doc))


def test_excel_is_parsed_by_helper(layout, runner):
    layout.add_dependencies()
    service = make_service(layout, runner)
    sheet = layout.root / "plan.xlsx"
    sheet.write_bytes(b"PK")
    runner.run_handler = lambda argv: FakeCompletedProcess(0, stdout='{"tasks": [1]}')

    assert service.parse_file(str(sheet)) == '{"tasks": [1]}'

    argv, kwargs = runner.runs[0]
    assert argv == [str(layout.app_data / "node" / "node"), str(layout.scripts / "parse-file.js"), str(sheet)]
    assert kwargs["env"]["NODE_PATH"] == str(layout.app_data / "dependencies" / "node_modules")


def test_excel_parse_failure(layout, runner):
    service = make_service(layout, runner)
    sheet = layout.root / "plan.xls"
    sheet.write_bytes(b"PK")
    runner.run_handler = lambda argv: FakeCompletedProcess(1, stderr="Unsupported sheet\n")

    with pytest.raises(ProcessExitError) as exc:
        service.parse_file(str(sheet))
    assert exc.value.detail == "Unsupported sheet"


def test_missing_helper_script(layout, runner):
    service = make_service(layout, runner, scripts=())
    sheet = layout.root / "plan.xlsx"
    sheet.write_bytes(b"PK")

    with pytest.raises(PathResolutionError) as exc:
        service.parse_file(str(sheet))
    assert str(layout.scripts / "parse-file.js") in str(exc.value)


def test_export_to_excel(layout, runner, sink):
    service = make_service(layout, runner)

    assert service.export_to_excel("in.json", "out.xlsx", sink) is True

    argv, _ = runner.runs[0]
    assert argv[1:] == [str(layout.scripts / "json_to_excel.js"), "--input", "in.json", "--output", "out.xlsx"]
    assert sink.named("app-log")[-1]["message"] == "Successfully exported to: out.xlsx"


def test_export_failure(layout, runner):
    service = make_service(layout, runner)
    runner.run_handler = lambda argv: FakeCompletedProcess(1, stderr="EACCES: permission denied")

    with pytest.raises(ProcessExitError) as exc:
        service.export_to_excel("in.json", "/readonly/out.xlsx")
    assert "EACCES" in exc.value.detail
