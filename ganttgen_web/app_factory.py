from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Flask

from ganttgen_web.adapters.node_dist import NodeDistribution
from ganttgen_web.adapters.process_runner import ProcessRunner
from ganttgen_web.config.ini_config import AppSettings, IniConfig
from ganttgen_web.domain.platform import HostPlatform
from ganttgen_web.repositories.install_repository import InstallRepository, shell_path_probe
from ganttgen_web.services.browser_installer import BrowserInstaller
from ganttgen_web.services.build_info import BuildInfoService
from ganttgen_web.services.dependency_installer import DependencyInstaller
from ganttgen_web.services.generation_service import GenerationService
from ganttgen_web.services.runtime_installer import RuntimeInstaller
from ganttgen_web.services.script_service import ScriptService
from ganttgen_web.services.status_service import StatusService
from ganttgen_web.web.routes import create_blueprint

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_services(settings: AppSettings, runner: Optional[ProcessRunner] = None) -> Dict[str, Any]:
    runner = runner or ProcessRunner()
    platform = HostPlatform.current()

    repo = InstallRepository(
        app_data_dir=settings.app_data_dir,
        resource_dir=settings.resource_dir,
        platform=platform,
        node_override=settings.node_path_override,
        path_probe=shell_path_probe(runner, platform) if settings.probe_path else None,
    )

    dist = NodeDistribution(
        base_url=settings.dist_base_url,
        version=settings.node_version,
        platform=platform,
        timeout_seconds=settings.download_timeout_seconds,
    )

    return {
        "status": StatusService(repo=repo, runner=runner),
        "build_info": BuildInfoService(
            runner=runner,
            repo_dir=settings.resource_dir,
            datetime_override=settings.build_datetime,
            commit_override=settings.build_commit,
            release_override=settings.is_release,
        ),
        "runtime_installer": RuntimeInstaller(repo=repo, dist=dist, runner=runner),
        "dependency_installer": DependencyInstaller(repo=repo, runner=runner),
        "browser_installer": BrowserInstaller(repo=repo, runner=runner),
        "generation": GenerationService(repo=repo, runner=runner),
        "scripts": ScriptService(repo=repo, runner=runner),
    }


def create_app(settings: Optional[AppSettings] = None, services: Optional[Dict[str, Any]] = None) -> Flask:
    if settings is None:
        settings = IniConfig.from_env_or_default().load_settings()

    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO), format=LOG_FORMAT)
    logging.getLogger(__name__).info("App data directory: %s", settings.app_data_dir)

    if services is None:
        services = build_services(settings)

    app = Flask(__name__)
    app.register_blueprint(create_blueprint(services))

    app.config["HOST"] = settings.flask_host
    app.config["PORT"] = settings.flask_port
    app.config["DEBUG"] = settings.flask_debug

    return app

# composition root (wiring)
#
# ganttgen_web/
#   __main__.py                 # python -m ganttgen_web
#   app_factory.py              # settings -> repository -> services -> blueprint
#
#   config/ini_config.py        # INI + env overrides -> AppSettings
#   domain/                     # models, errors, host platform facts
#   adapters/                   # subprocess seam, Node.js release download/extract
#   repositories/               # where node, npm, scripts and dependencies live
#   services/                   # installers, generation job, status, build info
#   web/routes.py               # JSON endpoints, one per operation
#
# Presentation (Flask)
#    |
#    v
# Service layer + error boundary (services/job_dispatcher.py)
#    |
#    v
# Repository + OS/subprocess adapters
#    |
#    v
# External: node, npm, build.js and friends, nodejs.org
