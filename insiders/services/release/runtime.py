"""Node.js runtime provisioning.

The node on PATH is used when it matches the wanted version. Otherwise the
official build is downloaded from nodejs.org and installed under the cache
directory, and its bin directory is put first on PATH for later steps.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from insiders.core.result import Err, Ok, Result
from insiders.output.console import ConsoleProtocol, Style
from insiders.platform.detection import Arch, Platform
from insiders.platform.process import run as run_process
from insiders.services.release.errors import StepError
from insiders.services.release.timeouts import VERSION_CHECK_TIMEOUT_SECONDS
from insiders.tools.download import Downloader
from insiders.tools.http import HttpClient
from insiders.tools.installer import Installer
from insiders.tools.node import NodeDist

_NODE_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)")


@dataclass(frozen=True, slots=True)
class NodeRuntime:
    version: str
    # None when the node already on PATH is used.
    bin_dir: Path | None = None


def find_tool(name: str, path: str | None = None) -> Result[str, StepError]:
    """Resolve an executable on path, default PATH (npm is npm.cmd on Windows)."""
    found = shutil.which(name, path=path)
    if found is None:
        return Err(
            StepError(
                kind="tool_missing",
                message=f"{name}: missing",
                hint=f"Install {name} and make sure it is on PATH",
            )
        )
    return Ok(found)


def parse_node_version(output: str) -> tuple[int, int, int] | None:
    m = _NODE_VERSION_RE.match(output.strip())
    if m is None:
        return None
    return (int(m.group(1)), int(m.group(2)), int(m.group(3)))


def version_matches(installed: tuple[int, int, int], wanted: str) -> bool:
    """True if installed satisfies wanted ("16", "16.20" or "16.20.2")."""
    wanted_parts = [int(p) for p in wanted.split(".")]
    return list(installed[: len(wanted_parts)]) == wanted_parts


def ensure_node(*, node: str, wanted: str, cwd: Path) -> Result[str, StepError]:
    """Check the given node matches the wanted version.

    Returns:
        Ok(installed version string) or Err(StepError).
    """
    result = run_process([node, "--version"], cwd=cwd, timeout=VERSION_CHECK_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            StepError(
                kind="tool_missing",
                message="node --version failed",
                hint=result.error.stderr.strip() or None,
            )
        )

    raw = result.value.strip()
    installed = parse_node_version(raw)
    if installed is None:
        return Err(StepError(kind="runtime_mismatch", message=f"unrecognized node version: {raw!r}"))

    if not version_matches(installed, wanted):
        return Err(
            StepError(
                kind="runtime_mismatch",
                message=f"node {raw} does not match NODE_VERSION={wanted}",
            )
        )
    return Ok(raw)


def _install_failed(message: str) -> Err[StepError]:
    return Err(
        StepError(
            kind="install_failed",
            message=message,
            hint="Check network access to nodejs.org, or put a matching node on PATH",
        )
    )


def install_node(
    *,
    wanted: str,
    install_root: Path,
    http: HttpClient,
    platform: Platform,
    arch: Arch,
    cwd: Path,
    console: ConsoleProtocol,
) -> Result[NodeRuntime, StepError]:
    """Install the newest Node.js matching wanted under install_root.

    An earlier install of the same version is reused.
    """
    dist = NodeDist()
    resolved = dist.resolve_version(http, wanted)
    if isinstance(resolved, Err):
        return _install_failed(f"cannot resolve Node.js {wanted}: {resolved.error}")
    version = resolved.value

    url = dist.download_url(version, platform, arch)
    node_platform = dist.platform_id(platform, arch)
    if url is None or node_platform is None:
        return _install_failed(f"no Node.js build for {platform}/{arch}")

    install_dir = install_root / f"node-v{version}-{node_platform}"
    bin_dir = dist.bin_dir(install_dir, platform)
    node = bin_dir / platform.exe_name("node")

    if not node.is_file():
        console.print(f"download {url}", Style.DIM)
        downloaded = Downloader(http, install_root / "downloads").download(url)
        if isinstance(downloaded, Err):
            return _install_failed(f"download failed: {downloaded.error}")

        installed = Installer().install(
            downloaded.value.path, install_dir, strip_components=dist.strip_components()
        )
        if isinstance(installed, Err):
            # Drop the archive so the next run downloads it again.
            downloaded.value.path.unlink(missing_ok=True)
            return _install_failed(str(installed.error))

    checked = ensure_node(node=str(node), wanted=wanted, cwd=cwd)
    if isinstance(checked, Err):
        return _install_failed(f"installed Node.js is not usable: {checked.error.message}")
    return Ok(NodeRuntime(version=checked.value, bin_dir=bin_dir))


def provision_node(
    *,
    wanted: str,
    path: str | None,
    install_root: Path,
    http: HttpClient,
    platform: Platform,
    arch: Arch,
    cwd: Path,
    console: ConsoleProtocol,
    dry_run: bool = False,
) -> Result[NodeRuntime, StepError]:
    """Use the node on path if it matches wanted, otherwise install one."""
    node = find_tool("node", path)
    if isinstance(node, Ok):
        current = ensure_node(node=node.value, wanted=wanted, cwd=cwd)
        if isinstance(current, Ok):
            return Ok(NodeRuntime(version=current.value))
        console.info(current.error.message)
    else:
        console.info("node is not on PATH")

    if dry_run:
        console.print(f"(dry-run) would install Node.js {wanted}", Style.DIM)
        return Ok(NodeRuntime(version=wanted))

    return install_node(
        wanted=wanted,
        install_root=install_root,
        http=http,
        platform=platform,
        arch=arch,
        cwd=cwd,
        console=console,
    )
