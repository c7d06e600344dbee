from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

from insiders.services.release.errors import StepError


StepName = Literal[
    "checkout",
    "runtime",
    "engine",
    "cache",
    "install",
    "build",
    "test",
    "resolve-version",
    "set-version",
    "publish",
    "notify",
]
StepStatus = Literal["succeeded", "failed", "skipped"]


# Names that only reach the step which needs them.
SCOPED_SECRET_NAMES = frozenset({"NPM_TOKEN", "TAILWIND_PLAY_TOKEN", "NODE_AUTH_TOKEN", "GH_TOKEN"})


@dataclass(frozen=True, slots=True)
class PipelineEnv:
    """Environment shared by every step.

    Fixed at pipeline start. A step may export new values (SHA_SHORT),
    which produces a new PipelineEnv for the steps after it.
    """

    values: Mapping[str, str]

    @classmethod
    def of(cls, values: Mapping[str, str]) -> PipelineEnv:
        return cls(values=MappingProxyType(dict(values)))

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def with_exports(self, exports: Mapping[str, str]) -> PipelineEnv:
        if not exports:
            return self
        merged = dict(self.values)
        merged.update(exports)
        return PipelineEnv.of(merged)

    def to_process_env(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        """Copy for a subprocess, optionally with step-scoped extras (tokens)."""
        env = dict(self.values)
        if extra:
            env.update(extra)
        return env


@dataclass(frozen=True, slots=True)
class StepOutcome:
    name: StepName
    title: str
    status: StepStatus
    attempts: int = 0
    error: StepError | None = None


@dataclass(frozen=True, slots=True)
class PipelineReport:
    outcomes: tuple[StepOutcome, ...]
    version: str | None = None
    cache_hit: bool | None = None

    @property
    def succeeded(self) -> bool:
        return all(o.status == "succeeded" for o in self.outcomes)

    @property
    def failed_step(self) -> StepOutcome | None:
        for outcome in self.outcomes:
            if outcome.status == "failed":
                return outcome
        return None

    def outcome(self, name: StepName) -> StepOutcome | None:
        for o in self.outcomes:
            if o.name == name:
                return o
        return None
