"""Error presentation and exit code mapping."""

from __future__ import annotations

from typing import TYPE_CHECKING

from insiders.core.errors import ErrorCode
from insiders.services.release.errors import StepError
from insiders.services.release.model import PipelineReport

if TYPE_CHECKING:
    from insiders.output.console import ConsoleProtocol

__all__ = ["print_config_error", "report_exit_code", "step_error_exit_code"]


def step_error_exit_code(error: StepError) -> int:
    match error.kind:
        case "tool_missing" | "runtime_mismatch" | "auth_missing" | "install_failed":
            return int(ErrorCode.ENV_ERROR)
        case "command_failed" | "checkout_failed" | "invalid_input":
            return int(ErrorCode.PIPELINE_ERROR)
    return int(ErrorCode.PIPELINE_ERROR)


def report_exit_code(report: PipelineReport) -> int:
    failed = report.failed_step
    if failed is None:
        return int(ErrorCode.OK)
    if failed.error is None:
        return int(ErrorCode.PIPELINE_ERROR)
    return step_error_exit_code(failed.error)


def print_config_error(message: str, path: object, console: ConsoleProtocol) -> None:
    if path is not None:
        console.error(f"{message} [{path}]")
    else:
        console.error(message)
