"""Downstream workflow dispatch through the GitHub CLI."""

from __future__ import annotations

from pathlib import Path

from insiders.core.config import DispatchTarget
from insiders.core.result import Err, Ok, Result
from insiders.output.console import ConsoleProtocol, Style
from insiders.platform.process import run as run_process
from insiders.services.release.errors import StepError
from insiders.services.release.timeouts import GH_TIMEOUT_SECONDS


def dispatch_cmd(gh: str, target: DispatchTarget, version: str) -> list[str]:
    return [
        gh,
        "workflow",
        "run",
        target.workflow,
        "--repo",
        target.repo,
        "--ref",
        target.ref,
        "-f",
        f"{target.input_name}={version}",
    ]


def dispatch_version(
    *,
    gh: str,
    target: DispatchTarget,
    version: str,
    token: str | None,
    base_env: dict[str, str],
    cwd: Path,
    console: ConsoleProtocol,
    dry_run: bool,
) -> Result[None, StepError]:
    """Ask the target repository to run its workflow for version."""
    cmd = dispatch_cmd(gh, target, version)
    console.print(" ".join(["gh", *cmd[1:]]), Style.DIM)

    if token is None:
        if dry_run:
            console.warning("TAILWIND_PLAY_TOKEN is not set; a real run would fail here")
            return Ok(None)
        return Err(
            StepError(
                kind="auth_missing",
                message="dispatch token missing",
                hint="Set TAILWIND_PLAY_TOKEN to a token allowed to run workflows in "
                f"{target.repo}",
            )
        )

    if dry_run:
        return Ok(None)

    env = dict(base_env)
    env["GH_TOKEN"] = token
    result = run_process(cmd, cwd=cwd, env=env, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        e = result.error
        return Err(
            StepError(
                kind="command_failed",
                message=f"failed to dispatch {target.workflow} in {target.repo}",
                hint=e.stderr.strip() or None,
            )
        )
    return Ok(None)
