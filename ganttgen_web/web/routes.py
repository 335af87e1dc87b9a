## routes.py
from __future__ import annotations

from typing import Any, Callable, Dict

from flask import Blueprint, current_app, jsonify, request

from ganttgen_web.domain.errors import (
    InstallInProgressError,
    PathResolutionError,
    PreconditionError,
    ValidationError,
)
from ganttgen_web.domain.models import GenerationRequest
from ganttgen_web.services.events import CollectingEventSink
from ganttgen_web.services.job_dispatcher import JobOutcome, dispatch


def _status_code(outcome: JobOutcome) -> int:
    if outcome.ok:
        return 200
    e = outcome.exception
    # InstallInProgressError is a PreconditionError, check it first
    if isinstance(e, InstallInProgressError):
        return 409
    if isinstance(e, (ValidationError, PreconditionError, PathResolutionError)):
        return 400
    return 500


def _jsonable(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return value


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _path_field(data: Dict[str, Any], name: str) -> str:
    value = data.get(name)
    return value if isinstance(value, str) else ""


def create_blueprint(services: Dict[str, Any]) -> Blueprint:
    """
    JSON surface over the services. Every operation goes through the error
    boundary and returns its event stream alongside the result.
    """
    bp = Blueprint("web", __name__)

    def run(operation: str, fn: Callable[..., Any]):
        sink = CollectingEventSink()
        outcome = dispatch(operation, lambda: fn(sink), sink)
        code = _status_code(outcome)
        current_app.logger.info("%s ok=%s status=%d events=%d", operation, outcome.ok, code, len(sink.events))
        return jsonify(
            ok=outcome.ok,
            result=_jsonable(outcome.value),
            error=outcome.error,
            events=sink.to_list(),
        ), code

    @bp.get("/status")
    def status():
        return run("status check", lambda sink: services["status"].check())

    @bp.get("/build-info")
    def build_info():
        return run("build info", lambda sink: services["build_info"].build_info())

    @bp.get("/dependencies-path")
    def dependencies_path():
        return run("dependencies path", lambda sink: services["status"].dependencies_path())

    @bp.post("/install/runtime")
    def install_runtime():
        return run("Node.js install", lambda sink: str(services["runtime_installer"].install(sink)))

    @bp.post("/install/dependencies")
    def install_dependencies():
        return run("dependency install", services["dependency_installer"].install)

    @bp.post("/install/browser")
    def install_browser():
        return run("browser install", services["browser_installer"].install)

    @bp.post("/validate")
    def validate():
        path = _path_field(_body(), "path")
        current_app.logger.info("Validating input file: %s", path)
        return run("input validation", lambda sink: services["generation"].validate(path, sink))

    @bp.post("/generate")
    def generate():
        # Parsed inside the boundary
        data = request.get_json(silent=True)

        def _generate(sink):
            req = GenerationRequest.from_dict(data if data is not None else {})
            current_app.logger.info("Generate: input=%s png=%s", req.input_path, req.export_png)
            return services["generation"].generate(req, sink)

        return run("generation", _generate)

    @bp.post("/parse")
    def parse():
        path = _path_field(_body(), "path")
        return run("file parsing", lambda sink: services["scripts"].parse_file(path, sink))

    @bp.post("/export-excel")
    def export_excel():
        data = _body()
        json_path = _path_field(data, "json_path")
        excel_path = _path_field(data, "excel_path")
        return run("Excel export", lambda sink: services["scripts"].export_to_excel(json_path, excel_path, sink))

    return bp
