from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import typer

from insiders.core.config import CONFIG_FILE_NAME, PipelineSettings, Secrets, load_settings
from insiders.core.errors import ErrorCode
from insiders.core.result import Err
from insiders.output.console import ConsoleProtocol, RichConsole
from insiders.output.errors import print_config_error


@dataclass(frozen=True, slots=True)
class CLIContext:
    workdir: Path
    settings: PipelineSettings
    secrets: Secrets
    environ: Mapping[str, str]
    console: ConsoleProtocol


def _config_path(workdir: Path, explicit: Path | None) -> Path | None:
    if explicit is not None:
        return explicit.expanduser()
    candidate = workdir / CONFIG_FILE_NAME
    return candidate if candidate.is_file() else None


def build_context(*, workdir: Path = Path("."), config_path: Path | None = None) -> CLIContext:
    console = RichConsole()
    try:
        root = workdir.expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --workdir: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    environ = dict(os.environ)
    path = _config_path(root, config_path)
    loaded = load_settings(environ, path, base_dir=root)
    if isinstance(loaded, Err):
        print_config_error(loaded.error.message, loaded.error.path, console)
        # Without a path the bad value came from the environment.
        code = ErrorCode.IO_ERROR if loaded.error.path is not None else ErrorCode.USER_ERROR
        raise typer.Exit(code=int(code))

    settings, secrets = loaded.value
    return CLIContext(
        workdir=root,
        settings=settings,
        secrets=secrets,
        environ=environ,
        console=console,
    )
