from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

StepErrorKind = Literal[
    "tool_missing",
    "runtime_mismatch",
    "command_failed",
    "auth_missing",
    "invalid_input",
    "checkout_failed",
    "install_failed",
]


@dataclass(frozen=True, slots=True)
class StepError:
    kind: StepErrorKind
    message: str
    hint: str | None = None
