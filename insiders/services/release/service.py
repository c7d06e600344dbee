from __future__ import annotations

import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from insiders.core.config import PipelineSettings, Secrets
from insiders.output.console import ConsoleProtocol
from insiders.services.release.model import SCOPED_SECRET_NAMES, PipelineEnv, PipelineReport
from insiders.services.release.pipeline import StepContext, print_report, run_pipeline
from insiders.services.release.steps import build_steps

PUSH_EVENT = "push"


@dataclass(frozen=True, slots=True)
class TriggerMismatch:
    message: str
    hint: str | None = None


def check_trigger(environ: Mapping[str, str], *, branch: str) -> TriggerMismatch | None:
    """Only a push to the release branch may publish.

    Variables that are absent (local runs) are not checked.
    """
    event = environ.get("GITHUB_EVENT_NAME")
    if event and event != PUSH_EVENT:
        return TriggerMismatch(
            message=f"pipeline runs on push events, got: {event}",
            hint="Pass --force to run anyway",
        )

    ref = environ.get("GITHUB_REF")
    expected = f"refs/heads/{branch}"
    if ref and ref != expected:
        return TriggerMismatch(
            message=f"pipeline runs on {expected}, got: {ref}",
            hint="Pass --force to run anyway",
        )
    return None


def pipeline_env(environ: Mapping[str, str], settings: PipelineSettings) -> PipelineEnv:
    """Base environment for every step.

    Tokens are dropped here and handed only to the step that uses them.
    """
    values = {k: v for k, v in environ.items() if k not in SCOPED_SECRET_NAMES}
    values.setdefault("CI", "true")
    values["CACHE_PREFIX"] = settings.cache_prefix
    values["NODE_VERSION"] = settings.node_version
    values["RELEASE_CHANNEL"] = settings.channel
    return PipelineEnv.of(values)


def run_release(
    *,
    workdir: Path,
    settings: PipelineSettings,
    secrets: Secrets,
    environ: Mapping[str, str],
    console: ConsoleProtocol,
    ref: str | None = None,
    dry_run: bool = False,
) -> PipelineReport:
    """Run the full release pipeline once and print its summary."""
    runner_temp = environ.get("RUNNER_TEMP")
    with tempfile.TemporaryDirectory(prefix="insiders-", dir=runner_temp or None) as tmp:
        ctx = StepContext(
            workdir=workdir,
            temp_dir=Path(tmp),
            settings=settings,
            secrets=secrets,
            env=pipeline_env(environ, settings),
            console=console,
            ref=ref,
            dry_run=dry_run,
        )
        report = run_pipeline(build_steps(settings), ctx)

    print_report(report, console)
    return report
