########## ini_config.py

import os
import sys
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

INI_DEFAULT_NAME = "GanttGen.ini"
APP_DIR_NAME = "GanttGen"

DEFAULT_NODE_VERSION = "24.12.0"
DEFAULT_DIST_BASE_URL = "https://nodejs.org/dist"


@dataclass(frozen=True)
class AppSettings:
    app_data_dir: Path
    resource_dir: Path
    node_path_override: Optional[Path]

    # Runtime installer
    node_version: str
    dist_base_url: str
    download_timeout_seconds: int
    probe_path: bool

    # Build metadata overrides (None -> computed at runtime)
    build_datetime: Optional[str]
    build_commit: Optional[str]
    is_release: Optional[bool]

    log_level: str

    flask_host: str
    flask_port: int
    flask_debug: bool


def default_app_data_dir(env: Optional[Mapping[str, str]] = None, system: Optional[str] = None) -> Path:
    """Per-user, per-application writable directory for the private runtime and dependencies."""
    env = os.environ if env is None else env
    system = system or sys.platform
    home = Path(env.get("HOME") or env.get("USERPROFILE") or Path.home())

    if system.startswith("win"):
        base = env.get("APPDATA")
        return (Path(base) if base else home / "AppData" / "Roaming") / APP_DIR_NAME
    if system == "darwin":
        return home / "Library" / "Application Support" / APP_DIR_NAME

    xdg = (env.get("XDG_DATA_HOME") or "").strip()
    return (Path(xdg) if xdg else home / ".local" / "share") / APP_DIR_NAME


def _parse_bool(raw: Optional[str]) -> Optional[bool]:
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in ("true", "1", "yes")


class IniConfig:
    """
    Adapter around ConfigParser, environment overrides and filesystem resolution.
    Keeps INI handling out of service code.
    """

    def __init__(self, ini_path: Optional[Path], env: Optional[Mapping[str, str]] = None):
        self._ini_path = ini_path
        self._env = os.environ if env is None else env
        self._cfg = ConfigParser()
        if ini_path is not None:
            read_ok = self._cfg.read(str(ini_path), encoding="utf-8-sig")
            if not read_ok:
                raise FileNotFoundError(f"INI file not found or unreadable: {ini_path}")

    @staticmethod
    def from_env_or_default(env: Optional[Mapping[str, str]] = None) -> "IniConfig":
        env = os.environ if env is None else env
        ini_raw = (env.get("GANTTGEN_INI") or "").strip()
        if ini_raw:
            return IniConfig(Path(ini_raw), env=env)

        # No explicit INI: use the project-root one if present, else pure defaults
        default_ini = Path(__file__).resolve().parents[2] / INI_DEFAULT_NAME
        return IniConfig(default_ini if default_ini.exists() else None, env=env)

    @property
    def ini_path(self) -> Optional[Path]:
        return self._ini_path

    def _cfg_path(self, section: str, key: str) -> Optional[Path]:
        raw = (self._cfg.get(section, key, fallback="") or "").strip()
        if not raw:
            return None
        raw = os.path.expandvars(os.path.expanduser(raw))
        return Path(raw).resolve()

    def _env_str(self, name: str) -> Optional[str]:
        raw = (self._env.get(name) or "").strip()
        return raw or None

    def load_settings(self) -> AppSettings:
        # Paths
        app_data_dir = self._cfg_path("paths", "app_data_dir") or default_app_data_dir(self._env)
        resource_dir = self._cfg_path("paths", "resource_dir") or Path(__file__).resolve().parents[2]

        node_raw = self._env_str("GANTTGEN_NODE")
        node_path_override = (
            Path(os.path.expanduser(node_raw)) if node_raw else self._cfg_path("paths", "node_path")
        )

        # Runtime installer
        node_version = (self._cfg.get("runtime", "node_version", fallback="") or "").strip() or DEFAULT_NODE_VERSION
        dist_base_url = (
            (self._cfg.get("runtime", "dist_base_url", fallback="") or "").strip() or DEFAULT_DIST_BASE_URL
        ).rstrip("/")
        download_timeout_seconds = self._cfg.getint("runtime", "download_timeout_seconds", fallback=300)
        probe_path = self._cfg.getboolean("runtime", "probe_path", fallback=True)

        # Build metadata: env beats INI, both optional
        build_datetime = self._env_str("BUILD_DATETIME") or (
            (self._cfg.get("build", "datetime", fallback="") or "").strip() or None
        )
        build_commit = self._env_str("BUILD_COMMIT") or (
            (self._cfg.get("build", "commit", fallback="") or "").strip() or None
        )
        is_release = _parse_bool(self._env.get("IS_RELEASE"))
        if is_release is None:
            is_release = _parse_bool(self._cfg.get("build", "is_release", fallback=None))

        log_level = (self._cfg.get("logging", "level", fallback="INFO") or "").strip().upper() or "INFO"

        # Flask
        flask_host = (self._cfg.get("flask", "host", fallback="127.0.0.1") or "").strip() or "127.0.0.1"
        flask_port = self._cfg.getint("flask", "port", fallback=5000)
        flask_debug = self._cfg.getboolean("flask", "debug", fallback=False)

        return AppSettings(
            app_data_dir=app_data_dir,
            resource_dir=resource_dir,
            node_path_override=node_path_override,
            node_version=node_version,
            dist_base_url=dist_base_url,
            download_timeout_seconds=download_timeout_seconds,
            probe_path=probe_path,
            build_datetime=build_datetime,
            build_commit=build_commit,
            is_release=is_release,
            log_level=log_level,
            flask_host=flask_host,
            flask_port=flask_port,
            flask_debug=flask_debug,
        )
