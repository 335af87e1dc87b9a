from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Mapping, Optional

NODE_PATH_VAR = "NODE_PATH"
BROWSERS_PATH_VAR = "PLAYWRIGHT_BROWSERS_PATH"


def prepend_to_path(existing: str, directory: str, separator: str) -> str:
    """Put `directory` first on a PATH-style value unless it is already on it."""
    if not existing:
        return directory
    if any(segment == directory for segment in existing.split(separator)):
        return existing
    return f"{directory}{separator}{existing}"


def with_runtime_on_path(
    runtime: Path,
    separator: str,
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Child env with the runtime's directory on PATH, so npm's own child processes find node."""
    env = dict(os.environ if base is None else base)
    env["PATH"] = prepend_to_path(env.get("PATH", ""), str(runtime.parent), separator)
    return env


def job_environment(
    dependency_root: Optional[Path],
    browser_root: Optional[Path],
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Child env for the generation helper scripts: installed packages + browser location."""
    env = dict(os.environ if base is None else base)
    if dependency_root is not None:
        env[NODE_PATH_VAR] = str(dependency_root / "node_modules")
    if browser_root is not None:
        env[BROWSERS_PATH_VAR] = str(browser_root)
    return env
