"""Plan command - show the pipeline without running it."""

from __future__ import annotations

from pathlib import Path

import typer

from insiders.cli.context import build_context
from insiders.output.console import Style
from insiders.services.release.steps import build_steps


def plan(
    config: Path | None = typer.Option(None, "--config", help="Settings file", show_default=False),
) -> None:
    """List the pipeline steps and the commands they run."""
    ctx = build_context(config_path=config)

    rows: list[list[str]] = []
    for index, step in enumerate(build_steps(ctx.settings), start=1):
        attempts = f" (x{step.attempts})" if step.attempts > 1 else ""
        rows.append([str(index), step.title + attempts, "; ".join(step.commands) or "-"])
    ctx.console.table(["#", "Step", "Commands"], rows)

    s = ctx.settings
    ctx.console.print(
        f"channel={s.channel} node={s.node_version} cache_prefix={s.cache_prefix}", Style.DIM
    )
