from __future__ import annotations

from pathlib import Path

from insiders.core.errors import ErrorCode
from insiders.output.console import MockConsole
from insiders.output.errors import print_config_error, report_exit_code, step_error_exit_code
from insiders.services.release.errors import StepError
from insiders.services.release.model import PipelineReport, StepOutcome


def test_environment_problems_map_to_env_error() -> None:
    for kind in ("tool_missing", "runtime_mismatch", "auth_missing", "install_failed"):
        assert step_error_exit_code(StepError(kind=kind, message="x")) == ErrorCode.ENV_ERROR


def test_step_failures_map_to_pipeline_error() -> None:
    for kind in ("command_failed", "checkout_failed", "invalid_input"):
        assert step_error_exit_code(StepError(kind=kind, message="x")) == ErrorCode.PIPELINE_ERROR


def test_successful_report_is_ok() -> None:
    report = PipelineReport(
        outcomes=(StepOutcome(name="build", title="Build", status="succeeded", attempts=1),),
        version=None,
        cache_hit=None,
    )
    assert report_exit_code(report) == ErrorCode.OK


def test_config_error_mentions_path() -> None:
    console = MockConsole()
    print_config_error("Invalid TOML", Path("insiders.toml"), console)
    assert console.find("Invalid TOML [insiders.toml]")
    assert console.has_error()
