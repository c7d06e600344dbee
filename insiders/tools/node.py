"""Node.js release archives from nodejs.org.

Website: https://nodejs.org/
Index: https://nodejs.org/dist/index.json
"""

from __future__ import annotations

import re
from pathlib import Path

from insiders.core.result import Err, Ok, Result
from insiders.core.structured import as_str_dict, get_str
from insiders.platform.detection import Arch, Platform
from insiders.tools.http import HttpClient, HttpError

__all__ = ["NODE_DIST_URL", "NodeDist"]

NODE_DIST_URL = "https://nodejs.org/dist"

_FULL_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")

# (Platform, Arch) -> nodejs.org platform string
_NODE_PLATFORMS: dict[tuple[Platform, Arch], str] = {
    (Platform.LINUX, Arch.X64): "linux-x64",
    (Platform.LINUX, Arch.ARM64): "linux-arm64",
    (Platform.MACOS, Arch.X64): "darwin-x64",
    (Platform.MACOS, Arch.ARM64): "darwin-arm64",
    (Platform.WINDOWS, Arch.X64): "win-x64",
    (Platform.WINDOWS, Arch.ARM64): "win-arm64",
}


def _matches(version: str, wanted: str) -> bool:
    parts = version.split(".")
    wanted_parts = wanted.split(".")
    return parts[: len(wanted_parts)] == wanted_parts


class NodeDist:
    """Resolves and locates official Node.js builds."""

    def __init__(self, base_url: str = NODE_DIST_URL) -> None:
        self.base_url = base_url.rstrip("/")

    @property
    def index_url(self) -> str:
        return f"{self.base_url}/index.json"

    def resolve_version(self, http: HttpClient, wanted: str) -> Result[str, HttpError]:
        """Newest released version matching wanted ("16", "16.20" or "16.20.2").

        A full version is returned as is, without fetching the index.
        """
        if _FULL_VERSION_RE.match(wanted):
            return Ok(wanted)

        result = http.get_json(self.index_url)
        if isinstance(result, Err):
            return result
        if not isinstance(result.value, list):
            return Err(HttpError(url=self.index_url, status=0, message="Expected JSON array"))

        # The index is ordered newest first.
        for entry in result.value:
            release = as_str_dict(entry)
            if release is None:
                continue
            version = (get_str(release, "version") or "").removeprefix("v")
            if _FULL_VERSION_RE.match(version) and _matches(version, wanted):
                return Ok(version)
        return Err(
            HttpError(url=self.index_url, status=0, message=f"no Node.js release matches {wanted}")
        )

    def platform_id(self, platform: Platform, arch: Arch) -> str | None:
        return _NODE_PLATFORMS.get((platform, arch))

    def archive_name(self, version: str, platform: Platform, arch: Arch) -> str | None:
        node_platform = self.platform_id(platform, arch)
        if node_platform is None:
            return None
        ext = "zip" if platform == Platform.WINDOWS else "tar.gz"
        return f"node-v{version}-{node_platform}.{ext}"

    def download_url(self, version: str, platform: Platform, arch: Arch) -> str | None:
        name = self.archive_name(version, platform, arch)
        if name is None:
            return None
        return f"{self.base_url}/v{version}/{name}"

    def strip_components(self) -> int:
        """Archives have a node-v<version>-<platform>/ root directory."""
        return 1

    def bin_dir(self, install_dir: Path, platform: Platform) -> Path:
        """node and npm live in bin/, or at the top level on Windows."""
        return install_dir if platform == Platform.WINDOWS else install_dir / "bin"
