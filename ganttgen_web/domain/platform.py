from __future__ import annotations

import platform as _platform
import sys
from dataclasses import dataclass
from pathlib import PurePath


@dataclass(frozen=True)
class HostPlatform:
    """
    OS family + CPU architecture, and every platform-dependent file name the
    installers and resolvers need. Kept as a value so tests can ask for a
    Windows layout on a Linux box.
    """
    system: str                 # "windows" | "darwin" | "linux"
    arch: str = "x64"           # "x64" | "arm64"

    @staticmethod
    def current() -> "HostPlatform":
        if sys.platform.startswith("win"):
            system = "windows"
        elif sys.platform == "darwin":
            system = "darwin"
        else:
            system = "linux"

        machine = (_platform.machine() or "").lower()
        arch = "arm64" if machine in ("arm64", "aarch64") else "x64"
        return HostPlatform(system=system, arch=arch)

    @property
    def is_windows(self) -> bool:
        return self.system == "windows"

    @property
    def is_linux(self) -> bool:
        return self.system == "linux"

    @property
    def node_binary(self) -> str:
        return "node.exe" if self.is_windows else "node"

    @property
    def npm_wrapper(self) -> str:
        return "npm.cmd" if self.is_windows else "npm"

    @property
    def npx_wrapper(self) -> str:
        return "npx.cmd" if self.is_windows else "npx"

    @property
    def path_separator(self) -> str:
        return ";" if self.is_windows else ":"

    @property
    def archive_suffix(self) -> str:
        return ".zip" if self.is_windows else ".tar.gz"

    def dist_name(self, version: str) -> str:
        os_part = "win" if self.is_windows else self.system
        return f"node-v{version}-{os_part}-{self.arch}"

    def archive_name(self, version: str) -> str:
        return self.dist_name(version) + self.archive_suffix

    @property
    def npm_cli_relpath(self) -> PurePath:
        """Location of npm-cli.js relative to the directory holding the runtime."""
        if self.is_windows:
            return PurePath("node_modules", "npm", "bin", "npm-cli.js")
        return PurePath("lib", "node_modules", "npm", "bin", "npm-cli.js")

    def path_probe(self, name: str) -> list[str]:
        return ["where", name] if self.is_windows else ["which", name]
