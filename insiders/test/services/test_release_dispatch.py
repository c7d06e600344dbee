from __future__ import annotations

from pathlib import Path

import pytest

from insiders.core.config import DispatchTarget
from insiders.core.result import Err, Ok
from insiders.output.console import MockConsole
from insiders.platform.process import ProcessError
from insiders.services.release import dispatch as dispatch_mod


class FakeRun:
    def __init__(self, result) -> None:
        self.result = result
        self.calls: list[tuple[list[str], dict[str, str] | None]] = []

    def __call__(self, cmd: list[str], *, cwd: Path, env=None, timeout: float | None = None):
        del cwd
        del timeout
        self.calls.append((cmd, env))
        return self.result


def _dispatch(tmp_path: Path, *, token: str | None, dry_run: bool = False, console=None):
    return dispatch_mod.dispatch_version(
        gh="gh",
        target=DispatchTarget(),
        version="0.0.0-insiders.abc1234",
        token=token,
        base_env={"CI": "true"},
        cwd=tmp_path,
        console=console or MockConsole(),
        dry_run=dry_run,
    )


def test_dispatch_cmd() -> None:
    cmd = dispatch_mod.dispatch_cmd("gh", DispatchTarget(), "0.0.0-insiders.abc1234")
    assert cmd == [
        "gh",
        "workflow",
        "run",
        "upgrade-tailwindcss.yml",
        "--repo",
        "tailwindlabs/play.tailwindcss.com",
        "--ref",
        "master",
        "-f",
        "insidersVersion=0.0.0-insiders.abc1234",
    ]


def test_dispatch_passes_token_via_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    fake = FakeRun(Ok(""))
    monkeypatch.setattr(dispatch_mod, "run_process", fake)

    assert _dispatch(tmp_path, token="gh-secret") == Ok(None)
    cmd, env = fake.calls[0]
    assert "gh-secret" not in " ".join(cmd)
    assert env is not None
    assert env["GH_TOKEN"] == "gh-secret"
    assert env["CI"] == "true"


def test_missing_token_fails(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    fake = FakeRun(Ok(""))
    monkeypatch.setattr(dispatch_mod, "run_process", fake)

    result = _dispatch(tmp_path, token=None)
    assert isinstance(result, Err)
    assert result.error.kind == "auth_missing"
    assert fake.calls == []


def test_missing_token_dry_run_warns(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    fake = FakeRun(Ok(""))
    monkeypatch.setattr(dispatch_mod, "run_process", fake)
    console = MockConsole()

    assert _dispatch(tmp_path, token=None, dry_run=True, console=console) == Ok(None)
    assert console.has_warning()
    assert fake.calls == []


def test_gh_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    fake = FakeRun(Err(ProcessError(("gh",), 1, "", "HTTP 404: Not Found")))
    monkeypatch.setattr(dispatch_mod, "run_process", fake)

    result = _dispatch(tmp_path, token="gh-secret")
    assert isinstance(result, Err)
    assert result.error.kind == "command_failed"
    assert result.error.hint == "HTTP 404: Not Found"
