"""Run command - execute the release pipeline."""

from __future__ import annotations

from pathlib import Path

import typer

from insiders.cli.commands._helpers import exit_with_code
from insiders.cli.context import build_context
from insiders.core.errors import ErrorCode
from insiders.output.console import Style
from insiders.output.errors import report_exit_code
from insiders.services.release.service import check_trigger, run_release


def run(
    workdir: Path = typer.Option(Path("."), "--workdir", help="Package checkout directory"),
    ref: str | None = typer.Option(
        None,
        "--ref",
        help="Commit to release (default: $GITHUB_SHA, else current HEAD)",
        show_default=False,
    ),
    config: Path | None = typer.Option(
        None, "--config", help="Settings file (default: <workdir>/insiders.toml)", show_default=False
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print mutating commands without running"),
    force: bool = typer.Option(False, "--force", help="Run even if the CI trigger does not match"),
) -> None:
    """Build, test, version, publish and notify."""
    ctx = build_context(workdir=workdir, config_path=config)

    mismatch = check_trigger(ctx.environ, branch=ctx.settings.branch)
    if mismatch is not None:
        if not force:
            ctx.console.error(mismatch.message)
            if mismatch.hint:
                ctx.console.print(f"hint: {mismatch.hint}", Style.DIM)
            exit_with_code(int(ErrorCode.USER_ERROR))
        ctx.console.warning(f"{mismatch.message} (forced)")

    report = run_release(
        workdir=ctx.workdir,
        settings=ctx.settings,
        secrets=ctx.secrets,
        environ=ctx.environ,
        console=ctx.console,
        ref=ref or ctx.environ.get("GITHUB_SHA") or None,
        dry_run=dry_run,
    )
    if not report.succeeded:
        exit_with_code(report_exit_code(report))
