"""Pipeline settings loading.

Settings come from three layers, lowest precedence first:
- built-in defaults (the constants below)
- an optional TOML file (insiders.toml in the work directory, or --config)
- environment variables (CACHE_PREFIX, NODE_VERSION, RELEASE_CHANNEL, ...)

Secrets are only ever read from the environment.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str, get_table

__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigError",
    "DispatchTarget",
    "PipelineSettings",
    "Secrets",
    "load_settings",
]

CONFIG_FILE_NAME = "insiders.toml"

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULT_CHANNEL = "insiders"
DEFAULT_BRANCH = "master"
DEFAULT_NODE_VERSION = "16"
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_CACHE_PREFIX = "stable"
DEFAULT_TEST_ATTEMPTS = 3

DEFAULT_DISPATCH_REPO = "tailwindlabs/play.tailwindcss.com"
DEFAULT_DISPATCH_REF = "master"
DEFAULT_DISPATCH_WORKFLOW = "upgrade-tailwindcss.yml"
DEFAULT_DISPATCH_INPUT = "insidersVersion"

# Channel ends up as a semver prerelease identifier and an npm dist-tag.
_CHANNEL_RE = re.compile(r"^[0-9A-Za-z-]+$")
_NODE_VERSION_RE = re.compile(r"^\d+(\.\d+){0,2}$")
_REPO_SLUG_RE = re.compile(r"^[\w.-]+/[\w.-]+$")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Settings could not be loaded or failed validation."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class DispatchTarget:
    """Downstream workflow notified after publish."""

    repo: str = DEFAULT_DISPATCH_REPO
    ref: str = DEFAULT_DISPATCH_REF
    workflow: str = DEFAULT_DISPATCH_WORKFLOW
    input_name: str = DEFAULT_DISPATCH_INPUT


@dataclass(frozen=True, slots=True)
class PipelineSettings:
    """Non-secret pipeline settings, fixed for the whole run."""

    channel: str = DEFAULT_CHANNEL
    branch: str = DEFAULT_BRANCH
    node_version: str = DEFAULT_NODE_VERSION
    registry_url: str = DEFAULT_REGISTRY_URL
    cache_prefix: str = DEFAULT_CACHE_PREFIX
    cache_dir: Path | None = None
    test_attempts: int = DEFAULT_TEST_ATTEMPTS
    repository_url: str | None = None
    dispatch: DispatchTarget = field(default_factory=DispatchTarget)


@dataclass(frozen=True, slots=True)
class Secrets:
    """Tokens read from the environment. Values are kept out of repr()."""

    npm_token: str | None = field(default=None, repr=False)
    dispatch_token: str | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> Secrets:
        return cls(
            npm_token=get_str(environ, "NPM_TOKEN"),
            dispatch_token=get_str(environ, "TAILWIND_PLAY_TOKEN"),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data = as_str_dict(tomllib.loads(path.read_bytes().decode("utf-8")))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def _from_table(data: Mapping[str, object], *, base_dir: Path) -> PipelineSettings:
    release: StrDict = get_table(data, "release") or {}
    runtime: StrDict = get_table(data, "runtime") or {}
    cache: StrDict = get_table(data, "cache") or {}
    dispatch: StrDict = get_table(data, "dispatch") or {}
    test: StrDict = get_table(data, "test") or {}

    cache_dir: Path | None = None
    raw_dir = get_str(cache, "dir")
    if raw_dir is not None:
        cache_dir = Path(raw_dir).expanduser()
        if not cache_dir.is_absolute():
            cache_dir = base_dir / cache_dir

    node_version: str | None = get_str(runtime, "node_version")
    if node_version is None:
        # `node_version = 16` is the natural way to write it in TOML.
        as_int = get_int(runtime, "node_version")
        node_version = str(as_int) if as_int is not None else None

    attempts = get_int(test, "attempts")

    return PipelineSettings(
        channel=get_str(release, "channel") or DEFAULT_CHANNEL,
        branch=get_str(release, "branch") or DEFAULT_BRANCH,
        node_version=node_version or DEFAULT_NODE_VERSION,
        registry_url=get_str(runtime, "registry_url") or DEFAULT_REGISTRY_URL,
        cache_prefix=get_str(cache, "prefix") or DEFAULT_CACHE_PREFIX,
        cache_dir=cache_dir,
        test_attempts=attempts if attempts is not None else DEFAULT_TEST_ATTEMPTS,
        repository_url=get_str(release, "repository"),
        dispatch=DispatchTarget(
            repo=get_str(dispatch, "repo") or DEFAULT_DISPATCH_REPO,
            ref=get_str(dispatch, "ref") or DEFAULT_DISPATCH_REF,
            workflow=get_str(dispatch, "workflow") or DEFAULT_DISPATCH_WORKFLOW,
            input_name=get_str(dispatch, "input") or DEFAULT_DISPATCH_INPUT,
        ),
    )


def _apply_env(settings: PipelineSettings, environ: Mapping[str, str]) -> PipelineSettings:
    cache_dir = settings.cache_dir
    raw_dir = get_str(environ, "INSIDERS_CACHE_DIR")
    if raw_dir is not None:
        cache_dir = Path(raw_dir).expanduser()

    return PipelineSettings(
        channel=get_str(environ, "RELEASE_CHANNEL") or settings.channel,
        branch=settings.branch,
        node_version=get_str(environ, "NODE_VERSION") or settings.node_version,
        registry_url=settings.registry_url,
        cache_prefix=get_str(environ, "CACHE_PREFIX") or settings.cache_prefix,
        cache_dir=cache_dir,
        test_attempts=settings.test_attempts,
        repository_url=settings.repository_url,
        dispatch=settings.dispatch,
    )


def _validate(settings: PipelineSettings, path: Path | None) -> Result[None, ConfigError]:
    if not _CHANNEL_RE.match(settings.channel):
        return Err(ConfigError(f"Invalid release channel: {settings.channel!r}", path=path))
    if settings.channel.lower() == "latest":
        return Err(ConfigError("Release channel must not be 'latest'", path=path))
    if not _NODE_VERSION_RE.match(settings.node_version):
        return Err(ConfigError(f"Invalid node version: {settings.node_version!r}", path=path))
    if settings.test_attempts < 1:
        return Err(ConfigError("test.attempts must be at least 1", path=path))
    if not _REPO_SLUG_RE.match(settings.dispatch.repo):
        return Err(ConfigError(f"Invalid dispatch repo: {settings.dispatch.repo!r}", path=path))
    return Ok(None)


def load_settings(
    environ: Mapping[str, str],
    config_path: Path | None = None,
    *,
    base_dir: Path | None = None,
) -> Result[tuple[PipelineSettings, Secrets], ConfigError]:
    """Resolve settings and secrets for one pipeline run.

    Args:
        environ: Process environment (usually os.environ).
        config_path: Optional TOML file. Missing file is an error only when
            the path was given explicitly by the caller.
        base_dir: Directory relative cache paths are resolved against.

    Returns:
        Ok((settings, secrets)) on success, Err(ConfigError) otherwise.
    """
    settings = PipelineSettings()
    if config_path is not None:
        parsed = _parse_toml(config_path)
        if isinstance(parsed, Err):
            return parsed
        try:
            settings = _from_table(parsed.value, base_dir=base_dir or config_path.parent)
        except (KeyError, TypeError, ValueError) as e:
            return Err(ConfigError(f"Invalid config structure: {e}", path=config_path))

    settings = _apply_env(settings, environ)
    valid = _validate(settings, config_path)
    if isinstance(valid, Err):
        return valid

    return Ok((settings, Secrets.from_env(environ)))
