from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ganttgen_web.adapters.node_dist import NodeDistribution
from ganttgen_web.adapters.process_runner import ProcessRunner
from ganttgen_web.domain.errors import GanttGenError, InstallError, VerificationError
from ganttgen_web.domain.models import PackageManager
from ganttgen_web.domain.platform import HostPlatform
from ganttgen_web.repositories.install_repository import InstallRepository
from ganttgen_web.services.events import EventEmitter, EventSink
from ganttgen_web.services.install_lock import single_flight

logger = logging.getLogger(__name__)

VERIFY_TIMEOUT_SECONDS = 60


def write_npm_wrappers(node_dir: Path, platform: HostPlatform) -> Tuple[Path, Path]:
    """
    npm and npx entry points that just run the private node against npm-cli.js.
    npx is expressed as `npm exec --yes --`.
    """
    node_bin = node_dir / platform.node_binary
    npm_cli = node_dir / platform.npm_cli_relpath
    if not npm_cli.exists():
        raise InstallError("Wrapper creation", f"npm-cli.js not found at {npm_cli}")

    npm_wrapper = node_dir / platform.npm_wrapper
    npx_wrapper = node_dir / platform.npx_wrapper

    if platform.is_windows:
        npm_script = f'@echo off\r\n"{node_bin}" "{npm_cli}" %*\r\n'
        npx_script = f'@echo off\r\n"{node_bin}" "{npm_cli}" exec --yes -- %*\r\n'
    else:
        npm_script = f'#!/bin/sh\n"{node_bin}" "{npm_cli}" "$@"\n'
        npx_script = f'#!/bin/sh\n"{node_bin}" "{npm_cli}" exec --yes -- "$@"\n'

    try:
        npm_wrapper.write_text(npm_script, encoding="utf-8", newline="")
        npx_wrapper.write_text(npx_script, encoding="utf-8", newline="")
        if not platform.is_windows:
            for p in (npm_wrapper, npx_wrapper, node_bin):
                p.chmod(0o755)
    except OSError as e:
        raise InstallError("Wrapper creation", str(e)) from e

    return npm_wrapper, npx_wrapper


@dataclass
class RuntimeInstaller:
    """
    Service layer: downloads the pinned Node.js release into the private
    app-data directory, replacing whatever was there, and proves it runs.
    """
    repo: InstallRepository
    dist: NodeDistribution
    runner: ProcessRunner

    def install(self, sink: Optional[EventSink] = None) -> Path:
        events = EventEmitter(sink)
        node_dir = self.repo.node_install_dir

        with single_flight(node_dir):
            try:
                node_bin = self._install(events, node_dir)
            except GanttGenError as e:
                events.install("Error", "Installation failed", 100, complete=True, error=str(e))
                raise

        events.install("Complete", "Node.js installed to application data.", 100, complete=True)
        return node_bin

    def _install(self, events: EventEmitter, node_dir: Path) -> Path:
        platform = self.repo.platform
        events.install("Installing", f"Downloading Node.js v{self.dist.version} to application data...", 10)
        events.info(f"Installing Node.js v{self.dist.version} into {node_dir}")

        # Never mix two versions in one directory
        try:
            if node_dir.exists():
                shutil.rmtree(node_dir)
            node_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError("Cleanup", f"Failed to clear existing Node.js install at {node_dir}: {e}") from e

        try:
            return self._populate(events, node_dir, platform)
        except GanttGenError:
            # No partial runtime is left behind
            shutil.rmtree(node_dir, ignore_errors=True)
            raise

    def _populate(self, events: EventEmitter, node_dir: Path, platform: HostPlatform) -> Path:
        with tempfile.TemporaryDirectory(prefix="ganttgen_node_") as td:
            tmp = Path(td)
            archive = self.dist.download(self.dist.archive_url, tmp / self.dist.archive_name)

            events.install("Installing", "Extracting Node.js...", 40)
            extract_dir = tmp / "extract"
            self.dist.extract(archive, extract_dir)
            extracted_root = self.dist.extracted_root(extract_dir)

            events.install("Installing", "Copying Node.js files...", 60)
            self._copy_runtime(extracted_root, node_dir, platform)

        write_npm_wrappers(node_dir, platform)

        events.install("Installing", "Verifying Node.js...", 80)
        node_bin = node_dir / platform.node_binary
        node_version = self._verify("Node.js", [str(node_bin)])
        npm_version = self._verify("npm", PackageManager(executable=node_dir / platform.npm_wrapper).argv())
        events.info(f"Node.js {node_version} / npm {npm_version} ready at {node_dir}")
        return node_bin

    @staticmethod
    def _copy_runtime(extracted_root: Path, node_dir: Path, platform: HostPlatform) -> None:
        try:
            if platform.is_windows:
                # Windows archive layout already matches: node.exe + node_modules/npm at the root
                shutil.copytree(extracted_root, node_dir, dirs_exist_ok=True)
                return

            source_node = extracted_root / "bin" / "node"
            if not source_node.is_file():
                raise InstallError("Copy", f"Node.js binary not found in archive at {source_node}")
            shutil.copy2(source_node, node_dir / "node")

            source_npm = extracted_root / "lib" / "node_modules" / "npm"
            target_npm = node_dir / "lib" / "node_modules" / "npm"
            shutil.copytree(source_npm, target_npm, dirs_exist_ok=True)
        except OSError as e:
            raise InstallError("Copy", f"Failed to copy Node.js files: {e}") from e

    def _verify(self, name: str, argv: list) -> str:
        try:
            proc = self.runner.run(argv + ["--version"], timeout=VERIFY_TIMEOUT_SECONDS)
        except GanttGenError as e:
            raise VerificationError(f"{name} could not be started: {e}") from e
        if proc.returncode != 0:
            detail = (proc.stderr or proc.stdout or "").strip()
            raise VerificationError(f"{name} --version exited with code {proc.returncode}. {detail}".strip())
        return (proc.stdout or "").strip()
