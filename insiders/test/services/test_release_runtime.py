from __future__ import annotations

import io
import tarfile
from pathlib import Path

import pytest

from insiders.core.result import Err, Ok
from insiders.output.console import MockConsole
from insiders.platform.detection import Arch, Platform
from insiders.platform.process import ProcessError
from insiders.services.release import runtime as runtime_mod
from insiders.services.release.errors import StepError
from insiders.services.release.runtime import (
    NodeRuntime,
    ensure_node,
    find_tool,
    parse_node_version,
    provision_node,
    version_matches,
)
from insiders.tools.http import HttpError, MockHttpClient


def _fake_node(output: str):
    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd
        del timeout
        assert cmd[1:] == ["--version"]
        return Ok(output)

    return fake_run


def test_parse_node_version() -> None:
    assert parse_node_version("v16.20.2\n") == (16, 20, 2)
    assert parse_node_version("garbage") is None


@pytest.mark.parametrize(
    ("wanted", "expected"),
    [("16", True), ("16.20", True), ("16.20.2", True), ("18", False), ("16.19", False)],
)
def test_version_matches(wanted: str, expected: bool) -> None:
    assert version_matches((16, 20, 2), wanted) is expected


def test_ensure_node_ok(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(runtime_mod, "run_process", _fake_node("v16.20.2\n"))
    assert ensure_node(node="node", wanted="16", cwd=tmp_path) == Ok("v16.20.2")


def test_ensure_node_mismatch(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(runtime_mod, "run_process", _fake_node("v18.19.0\n"))
    result = ensure_node(node="node", wanted="16", cwd=tmp_path)
    assert isinstance(result, Err)
    assert result.error.kind == "runtime_mismatch"
    assert "NODE_VERSION=16" in result.error.message


def test_ensure_node_broken(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd
        del timeout
        return Err(ProcessError(tuple(cmd), 1, "", "segfault"))

    monkeypatch.setattr(runtime_mod, "run_process", fake_run)
    result = ensure_node(node="node", wanted="16", cwd=tmp_path)
    assert isinstance(result, Err)
    assert result.error.kind == "tool_missing"
    assert result.error.hint == "segfault"


def test_find_tool_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(runtime_mod.shutil, "which", lambda name, path=None: None)
    result = find_tool("gh")
    assert isinstance(result, Err)
    assert result.error.kind == "tool_missing"
    assert result.error.message == "gh: missing"


def test_find_tool_found(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(runtime_mod.shutil, "which", lambda name, path=None: f"/usr/bin/{name}")
    assert find_tool("npm") == Ok("/usr/bin/npm")


def test_find_tool_searches_given_path(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[str | None] = []

    def fake_which(name: str, path: str | None = None) -> str:
        seen.append(path)
        return f"/opt/node/bin/{name}"

    monkeypatch.setattr(runtime_mod.shutil, "which", fake_which)
    assert find_tool("npm", "/opt/node/bin") == Ok("/opt/node/bin/npm")
    assert seen == ["/opt/node/bin"]


# -----------------------------------------------------------------------------
# Provisioning
# -----------------------------------------------------------------------------

INDEX = [
    {"version": "v18.19.0"},
    {"version": "v16.20.2"},
    {"version": "v16.20.1"},
]
ARCHIVE_URL = "https://nodejs.org/dist/v16.20.2/node-v16.20.2-linux-x64.tar.gz"


def _node_archive() -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in [
            ("node-v16.20.2-linux-x64/bin/node", b"#!/bin/sh\n"),
            ("node-v16.20.2-linux-x64/lib/node_modules/npm/bin/npm-cli.js", b"// npm\n"),
        ]:
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))
        link = tarfile.TarInfo("node-v16.20.2-linux-x64/bin/npm")
        link.type = tarfile.SYMTYPE
        link.linkname = "../lib/node_modules/npm/bin/npm-cli.js"
        tar.addfile(link)
    return buf.getvalue()


def _versions(by_exe: dict[str, str]):
    """run_process fake answering `<node> --version` per executable."""

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
        del cwd
        del timeout
        for suffix, output in by_exe.items():
            if cmd[0].endswith(suffix):
                return Ok(output)
        return Err(ProcessError(tuple(cmd), -1, "", "No such file"))

    return fake_run


def _http() -> MockHttpClient:
    http = MockHttpClient()
    http.set_json("https://nodejs.org/dist/index.json", INDEX)
    http.set_download(ARCHIVE_URL, _node_archive())
    return http


def _provision(tmp_path: Path, http: MockHttpClient, console: MockConsole, **overrides):
    kwargs = {
        "wanted": "16",
        "path": "/usr/bin",
        "install_root": tmp_path / "node",
        "http": http,
        "platform": Platform.LINUX,
        "arch": Arch.X64,
        "cwd": tmp_path,
        "console": console,
    }
    kwargs.update(overrides)
    return provision_node(**kwargs)  # type: ignore[arg-type]


class TestProvisionNode:
    def test_matching_path_node_is_used(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(runtime_mod, "find_tool", lambda name, path=None: Ok("/usr/bin/node"))
        monkeypatch.setattr(runtime_mod, "run_process", _versions({"/usr/bin/node": "v16.20.2\n"}))
        http = _http()

        result = _provision(tmp_path, http, MockConsole())

        assert result == Ok(NodeRuntime(version="v16.20.2"))
        assert http.calls == []

    def test_mismatched_path_node_gets_installed(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setattr(runtime_mod, "find_tool", lambda name, path=None: Ok("/usr/bin/node"))
        monkeypatch.setattr(
            runtime_mod,
            "run_process",
            _versions({"/usr/bin/node": "v18.19.0\n", "bin/node": "v16.20.2\n"}),
        )
        http = _http()
        console = MockConsole()

        result = _provision(tmp_path, http, console)

        assert isinstance(result, Ok)
        bin_dir = tmp_path / "node" / "node-v16.20.2-linux-x64" / "bin"
        assert result.value == NodeRuntime(version="v16.20.2", bin_dir=bin_dir)
        assert (bin_dir / "node").is_file()
        assert (bin_dir / "npm").is_symlink()
        assert (bin_dir / "npm").read_text() == "// npm\n"
        assert ("download", ARCHIVE_URL) in http.calls
        assert console.find("does not match NODE_VERSION=16")

    def test_missing_node_gets_installed(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(
            runtime_mod, "find_tool", lambda name, path=None: Err(StepError("tool_missing", "node: missing"))
        )
        monkeypatch.setattr(runtime_mod, "run_process", _versions({"bin/node": "v16.20.2\n"}))

        result = _provision(tmp_path, _http(), MockConsole())

        assert isinstance(result, Ok)
        assert result.value.bin_dir is not None

    def test_existing_install_is_reused(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(
            runtime_mod, "find_tool", lambda name, path=None: Err(StepError("tool_missing", "node: missing"))
        )
        monkeypatch.setattr(runtime_mod, "run_process", _versions({"bin/node": "v16.20.2\n"}))
        _provision(tmp_path, _http(), MockConsole())

        http = _http()
        result = _provision(tmp_path, http, MockConsole())

        assert isinstance(result, Ok)
        assert ("download", ARCHIVE_URL) not in http.calls

    def test_download_failure(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(runtime_mod, "find_tool", lambda name, path=None: Ok("/usr/bin/node"))
        monkeypatch.setattr(runtime_mod, "run_process", _versions({"/usr/bin/node": "v18.19.0\n"}))
        http = MockHttpClient()
        http.set_json("https://nodejs.org/dist/index.json", INDEX)
        http.set_download(ARCHIVE_URL, HttpError(url=ARCHIVE_URL, status=503, message="Unavailable"))

        result = _provision(tmp_path, http, MockConsole())

        assert isinstance(result, Err)
        assert result.error.kind == "install_failed"
        assert "503" in result.error.message

    def test_unsupported_platform(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(runtime_mod, "find_tool", lambda name, path=None: Ok("/usr/bin/node"))
        monkeypatch.setattr(runtime_mod, "run_process", _versions({"/usr/bin/node": "v18.19.0\n"}))

        result = _provision(tmp_path, _http(), MockConsole(), arch=Arch.UNKNOWN)

        assert isinstance(result, Err)
        assert result.error.kind == "install_failed"

    def test_dry_run_does_not_download(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(runtime_mod, "find_tool", lambda name, path=None: Ok("/usr/bin/node"))
        monkeypatch.setattr(runtime_mod, "run_process", _versions({"/usr/bin/node": "v18.19.0\n"}))
        http = _http()
        console = MockConsole()

        result = _provision(tmp_path, http, console, dry_run=True)

        assert result == Ok(NodeRuntime(version="16"))
        assert http.calls == []
        assert console.find("(dry-run) would install Node.js 16")
