from __future__ import annotations

from pathlib import Path

import pytest

from ganttgen_web.app_factory import create_app
from ganttgen_web.config import IniConfig
from ganttgen_web.domain.errors import InstallInProgressError, ProcessExitError
from ganttgen_web.domain.models import DependencyStatus
from ganttgen_web.services.events import EventEmitter
from ganttgen_web.services.generation_service import GenerationService
from ganttgen_web.services.script_service import ScriptService


# -----------------------------
# Test doubles
# -----------------------------
class FakeStatusService:
    def check(self) -> DependencyStatus:
        return DependencyStatus(node_available=True, node_version="v24.12.0")

    def dependencies_path(self) -> str:
        return "/data/GanttGen/dependencies"


class FakeBuildInfo:
    def build_info(self):
        raise RuntimeError("git exploded")


class BusyInstaller:
    def install(self, sink=None):
        raise InstallInProgressError(Path("/data/GanttGen/node"))


class FailingInstaller:
    def install(self, sink=None):
        EventEmitter(sink).install("Installing", "npm install...", 20)
        raise ProcessExitError("npm install", 1, "npm ERR! 404")


# -----------------------------
# Helpers
# -----------------------------
@pytest.fixture
def client(layout, runner):
    layout.add_private_runtime()
    repo = layout.repo()
    services = {
        "status": FakeStatusService(),
        "build_info": FakeBuildInfo(),
        "runtime_installer": BusyInstaller(),
        "dependency_installer": FailingInstaller(),
        "browser_installer": BusyInstaller(),
        "generation": GenerationService(repo=repo, runner=runner),
        "scripts": ScriptService(repo=repo, runner=runner),
    }
    settings = IniConfig(None, env={"HOME": str(layout.root)}).load_settings()
    app = create_app(settings=settings, services=services)
    app.config["TESTING"] = True
    return app.test_client()


def test_status(client):
    resp = client.get("/status")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True
    assert body["error"] is None
    assert body["result"]["node_version"] == "v24.12.0"


def test_dependencies_path(client):
    assert client.get("/dependencies-path").get_json()["result"] == "/data/GanttGen/dependencies"


def test_unexpected_error_is_500(client):
    resp = client.get("/build-info")

    assert resp.status_code == 500
    body = resp.get_json()
    assert body["ok"] is False
    assert body["error"].startswith("Unexpected failure during build info:")
    assert body["events"][-1]["payload"]["level"] == "error"


def test_install_in_progress_is_409(client):
    assert client.post("/install/runtime").status_code == 409
    assert client.post("/install/browser").status_code == 409


def test_failed_install_returns_events(client):
    resp = client.post("/install/dependencies")

    assert resp.status_code == 500
    body = resp.get_json()
    assert [e["event"] for e in body["events"]] == ["install-progress", "app-log"]
    assert "npm ERR! 404" in body["error"]


def test_validate_bad_input_is_400(client, layout):
    resp = client.post("/validate", json={"path": str(layout.root / "missing.json")})

    assert resp.status_code == 400
    assert "File does not exist" in resp.get_json()["error"]


def test_generate_end_to_end(client, layout, runner):
    data = layout.root / "plan.json"
    data.write_text("{}", encoding="utf-8")
    runner.queue_process(stdout=["Parsing input...", "Generated: out/plan.html"])

    resp = client.post("/generate", json={"input_path": str(data), "palette": "ocean"})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["result"]["html_path"] == "out/plan.html"
    progress = [e["payload"]["progress"] for e in body["events"] if e["event"] == "generation-progress"]
    assert progress == [10, 30, 40, 100]

    argv, _ = runner.spawns[0]
    assert argv[argv.index("--palette") + 1] == "ocean"
    assert argv[argv.index("--view-mode") + 1] == "weeks"


def test_generate_png_without_browser_is_400(client, layout):
    data = layout.root / "plan.json"
    data.write_text("{}", encoding="utf-8")

    resp = client.post("/generate", json={"input_path": str(data), "export_png": True})

    assert resp.status_code == 400
    assert "browser" in resp.get_json()["error"]


def test_parse_json(client, layout):
    data = layout.root / "plan.json"
    data.write_text('{"a": 1}', encoding="utf-8")

    resp = client.post("/parse", json={"path": str(data)})

    assert resp.status_code == 200
    assert resp.get_json()["result"] == '{"a": 1}'


def test_export_missing_script_is_400(client):
    resp = client.post("/export-excel", json={"json_path": "a.json", "excel_path": "a.xlsx"})

    assert resp.status_code == 400
    assert "json_to_excel.js" in resp.get_json()["error"]


@pytest.mark.parametrize("payload", [["x"], {"input_path": "a.json", "output_path": 5}])
def test_generate_malformed_body_is_400(client, runner, payload):
    resp = client.post("/generate", json=payload)

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["ok"] is False
    assert body["events"][-1]["payload"]["level"] == "error"
    assert runner.spawns == []


def test_non_object_body_is_treated_as_empty(client):
    resp = client.post("/validate", json=["x"])

    assert resp.status_code == 400
    assert "File does not exist" in resp.get_json()["error"]
