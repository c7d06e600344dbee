"""Git repository operations used by the pipeline.

Usage:
    repo = Repository(Path("/path/to/checkout"))

    match repo.short_sha():
        case Ok(sha):
            print(f"version suffix: {sha}")
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from insiders.core.result import Err, Ok, Result
from insiders.platform.process import ProcessError
from insiders.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

_SHORT_SHA_RE = re.compile(r"^[0-9a-f]{4,40}$")

__all__ = ["GitError", "Repository", "clone"]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


def _git_error(command: str, error: ProcessError, fallback: str) -> GitError:
    return GitError(
        command=command,
        message=error.stderr.strip() or error.stdout.strip() or fallback,
        returncode=error.returncode,
    )


class Repository:
    """A local git checkout.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a git repository (.git dir, or .git file for worktrees)."""
        return (self.path / ".git").exists()

    def head_sha(self) -> Result[str, GitError]:
        """Full SHA of HEAD."""
        result = self._run(["rev-parse", "HEAD"])
        match result:
            case Err(e):
                return Err(_git_error("rev-parse HEAD", e, "rev-parse failed"))
            case Ok(stdout):
                return Ok(stdout.strip())

    def short_sha(self) -> Result[str, GitError]:
        """Abbreviated SHA of HEAD, as printed by `git rev-parse --short HEAD`."""
        result = self._run(["rev-parse", "--short", "HEAD"])
        match result:
            case Err(e):
                return Err(_git_error("rev-parse --short HEAD", e, "rev-parse failed"))
            case Ok(stdout):
                sha = stdout.strip()
                if not _SHORT_SHA_RE.match(sha):
                    return Err(
                        GitError(
                            command="rev-parse --short HEAD",
                            message=f"unexpected rev-parse output: {sha!r}",
                        )
                    )
                return Ok(sha)

    def resolve(self, ref: str) -> Result[str, GitError]:
        """Resolve a ref or SHA prefix to a full commit SHA."""
        result = self._run(["rev-parse", "--verify", f"{ref}^{{commit}}"])
        match result:
            case Err(e):
                return Err(_git_error("rev-parse --verify", e, f"unknown ref: {ref}"))
            case Ok(stdout):
                return Ok(stdout.strip())

    def fetch(self, ref: str) -> Result[None, GitError]:
        """Fetch a single ref or commit from origin."""
        result = self._run(["fetch", "--no-tags", "origin", ref])
        if isinstance(result, Err):
            return Err(_git_error("fetch", result.error, "fetch failed"))
        return Ok(None)

    def checkout(self, ref: str) -> Result[None, GitError]:
        """Check out ref with a detached HEAD, discarding local changes."""
        result = self._run(["checkout", "--force", "--detach", ref])
        if isinstance(result, Err):
            return Err(_git_error("checkout", result.error, f"checkout failed: {ref}"))
        return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in {"fetch", "clone"} else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)


def clone(url: str, dest: Path) -> Result[Repository, GitError]:
    """Clone url into dest (which must not exist or be empty)."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    result = run_process(
        ["git", "clone", "--no-tags", url, str(dest)],
        cwd=dest.parent,
        timeout=_GIT_NETWORK_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(_git_error("clone", result.error, f"clone failed: {url}"))
    return Ok(Repository(dest))
