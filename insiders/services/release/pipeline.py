"""Linear pipeline runner.

Steps run strictly in order. The first step that fails halts the run and
every later step is reported as skipped. A step may be given more than one
attempt; attempts repeat immediately with no delay.

Post hooks registered by successful steps (the cache save) run only once
every step has succeeded. Their failures are warnings.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path

from insiders.core.config import PipelineSettings, Secrets
from insiders.core.result import Err, Ok, Result
from insiders.output.console import ConsoleProtocol, Style
from insiders.services.release.errors import StepError
from insiders.services.release.model import (
    PipelineEnv,
    PipelineReport,
    StepName,
    StepOutcome,
)
from insiders.services.release.version import compute_version


@dataclass(frozen=True, slots=True)
class StepContext:
    """Everything a step may read. Replaced, never mutated, between steps."""

    workdir: Path
    temp_dir: Path
    settings: PipelineSettings
    secrets: Secrets
    env: PipelineEnv
    console: ConsoleProtocol
    ref: str | None = None
    dry_run: bool = False

    def version(self) -> Result[str, StepError]:
        """The release version, once SHA_SHORT has been exported."""
        sha = self.env.get("SHA_SHORT")
        if sha is None:
            return Err(StepError(kind="invalid_input", message="SHA_SHORT is not resolved yet"))
        return compute_version(self.settings.channel, sha)


PostHook = Callable[[StepContext], Result[None, StepError]]


def _no_exports() -> dict[str, str]:
    return {}


@dataclass(frozen=True, slots=True)
class StepOutput:
    exports: Mapping[str, str] = field(default_factory=_no_exports)
    post: PostHook | None = None


StepAction = Callable[[StepContext], Result[StepOutput, StepError]]


@dataclass(frozen=True, slots=True)
class Step:
    name: StepName
    title: str
    action: StepAction
    attempts: int = 1
    # Human readable commands, for `insiders plan`.
    commands: tuple[str, ...] = ()


def run_with_retry(
    step: Step, ctx: StepContext
) -> tuple[Result[StepOutput, StepError], int]:
    """Run step.action up to step.attempts times.

    Returns:
        (first Ok or last Err, number of attempts made)
    """
    attempts = max(1, step.attempts)
    result: Result[StepOutput, StepError] = Err(
        StepError(kind="invalid_input", message=f"{step.name}: no attempt made")
    )
    for attempt in range(1, attempts + 1):
        if attempts > 1:
            ctx.console.print(f"attempt {attempt}/{attempts}", Style.DIM)
        result = step.action(ctx)
        if isinstance(result, Ok):
            return result, attempt
        if attempt < attempts:
            ctx.console.warning(f"{step.title} failed: {result.error.message}; retrying")
    return result, attempts


def _print_step_error(console: ConsoleProtocol, title: str, error: StepError) -> None:
    console.error(f"{title}: {error.message}")
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def run_pipeline(steps: Sequence[Step], ctx: StepContext) -> PipelineReport:
    outcomes: list[StepOutcome] = []
    posts: list[tuple[Step, PostHook]] = []
    failed = False
    total = len(steps)

    for index, step in enumerate(steps, start=1):
        if failed:
            outcomes.append(StepOutcome(name=step.name, title=step.title, status="skipped"))
            continue

        ctx.console.header(f"[{index}/{total}] {step.title}")
        result, attempts = run_with_retry(step, ctx)
        match result:
            case Ok(output):
                ctx = replace(ctx, env=ctx.env.with_exports(output.exports))
                if output.post is not None:
                    posts.append((step, output.post))
                outcomes.append(
                    StepOutcome(
                        name=step.name, title=step.title, status="succeeded", attempts=attempts
                    )
                )
            case Err(error):
                _print_step_error(ctx.console, step.title, error)
                outcomes.append(
                    StepOutcome(
                        name=step.name,
                        title=step.title,
                        status="failed",
                        attempts=attempts,
                        error=error,
                    )
                )
                failed = True

    if not failed:
        for step, post in posts:
            ctx.console.header(f"Post {step.title}")
            post_result = post(ctx)
            if isinstance(post_result, Err):
                ctx.console.warning(f"{step.title}: {post_result.error.message}")

    version_result = ctx.version()
    cache_hit = ctx.env.get("CACHE_HIT")
    return PipelineReport(
        outcomes=tuple(outcomes),
        version=version_result.value if isinstance(version_result, Ok) else None,
        cache_hit=None if cache_hit is None else cache_hit == "true",
    )


def print_report(report: PipelineReport, console: ConsoleProtocol) -> None:
    rows: list[list[str]] = []
    for outcome in report.outcomes:
        attempts = str(outcome.attempts) if outcome.attempts else "-"
        rows.append([outcome.title, outcome.status, attempts])

    console.newline()
    console.table(["Step", "Status", "Attempts"], rows)

    if report.cache_hit is not None:
        console.print(f"cache: {'hit' if report.cache_hit else 'miss'}", Style.DIM)

    failed = report.failed_step
    if failed is not None:
        console.error(f"pipeline failed at: {failed.title}")
        return
    if report.version is not None:
        console.success(f"released {report.version}")
    else:
        console.success("pipeline succeeded")
