"""Version and cache-key commands - print derived values."""

from __future__ import annotations

from pathlib import Path

import typer

from insiders.cli.commands._helpers import exit_on_error
from insiders.cli.context import build_context
from insiders.services.release.steps import dependency_cache_key
from insiders.services.release.version import compute_version


def version(
    sha: str = typer.Option(..., "--sha", help="Short commit SHA"),
    channel: str | None = typer.Option(
        None, "--channel", help="Release channel (default: $RELEASE_CHANNEL)", show_default=False
    ),
) -> None:
    """Print the insiders version for a commit."""
    ctx = build_context()
    result = compute_version(channel or ctx.settings.channel, sha)
    exit_on_error(result, ctx)
    typer.echo(result.unwrap())


def cache_key(
    workdir: Path = typer.Option(Path("."), "--workdir", help="Package checkout directory"),
) -> None:
    """Print the dependency cache key for a checkout."""
    ctx = build_context(workdir=workdir)
    typer.echo(dependency_cache_key(ctx.workdir, ctx.settings))
