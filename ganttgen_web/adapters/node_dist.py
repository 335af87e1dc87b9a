from __future__ import annotations

import logging
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path

import requests

from ganttgen_web.domain.errors import DownloadError, ExtractionError
from ganttgen_web.domain.platform import HostPlatform

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 512


def _ensure_inside(root: Path, member_name: str) -> Path:
    target = (root / member_name).resolve()
    if target != root and root not in target.parents:
        raise ExtractionError(f"Archive entry escapes the extraction directory: {member_name}")
    return target


@dataclass
class NodeDistribution:
    """
    Adapter for the official Node.js release archives: URL layout, streamed
    download and extraction. Knows nothing about where the runtime ends up.
    """
    base_url: str
    version: str
    platform: HostPlatform
    timeout_seconds: int = 300

    @property
    def archive_name(self) -> str:
        return self.platform.archive_name(self.version)

    @property
    def archive_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/v{self.version}/{self.archive_name}"

    def download(self, url: str, dest: Path) -> Path:
        dest.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading %s -> %s", url, dest)
        try:
            with requests.get(url, stream=True, timeout=self.timeout_seconds) as r:
                r.raise_for_status()
                with open(dest, "wb") as f:
                    for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
        except requests.exceptions.RequestException as e:
            raise DownloadError(f"Failed to download {url}: {e}") from e
        except OSError as e:
            raise DownloadError(f"Failed to write {dest}: {e}") from e
        return dest

    def extract(self, archive: Path, dest: Path) -> None:
        dest.mkdir(parents=True, exist_ok=True)
        root = dest.resolve()
        logger.info("Extracting %s -> %s", archive, dest)

        try:
            if archive.name.endswith(".zip"):
                with zipfile.ZipFile(archive, "r") as zf:
                    for info in zf.infolist():
                        _ensure_inside(root, info.filename)
                    zf.extractall(root)
            else:
                with tarfile.open(archive, "r:*") as tf:
                    for member in tf.getmembers():
                        _ensure_inside(root, member.name)
                        if member.issym():
                            _ensure_inside(root, str(Path(member.name).parent / member.linkname))
                        elif member.islnk():
                            _ensure_inside(root, member.linkname)
                    if hasattr(tarfile, "data_filter"):
                        tf.extractall(root, filter="data")
                    else:
                        tf.extractall(root)
        except (tarfile.TarError, zipfile.BadZipFile) as e:
            raise ExtractionError(f"Failed to read archive {archive}: {e}") from e
        except OSError as e:
            raise ExtractionError(f"Failed to extract archive to {dest}: {e}") from e

    @staticmethod
    def extracted_root(extract_dir: Path) -> Path:
        """The single top-level directory the archive unpacked into."""
        try:
            dirs = sorted(p for p in extract_dir.iterdir() if p.is_dir())
        except OSError as e:
            raise ExtractionError(f"Failed to read extract dir {extract_dir}: {e}") from e
        if not dirs:
            raise ExtractionError(f"Failed to find extracted Node.js directory in {extract_dir}")
        return dirs[0]
