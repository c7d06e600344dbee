"""The release steps, in pipeline order.

Each step is a function of StepContext returning Ok(StepOutput) or
Err(StepError). Commands that change the checkout, the registry or a
remote repository are only printed when the context is a dry run.
"""

from __future__ import annotations

import os
from pathlib import Path

from insiders.core.config import PipelineSettings
from insiders.core.result import Err, Ok, Result
from insiders.git.repository import Repository, clone
from insiders.output.console import Style
from insiders.platform.detection import detect_arch, detect_platform
from insiders.platform.files import atomic_write_text
from insiders.platform.process import run_silent
from insiders.services.release import npm
from insiders.services.release.cache import (
    CacheStore,
    cache_key,
    default_cache_dir,
    lockfile_hash,
)
from insiders.services.release.dispatch import dispatch_version
from insiders.services.release.errors import StepError
from insiders.services.release.pipeline import PostHook, Step, StepContext, StepOutput
from insiders.services.release.runtime import find_tool, provision_node
from insiders.services.release.timeouts import (
    BUILD_TIMEOUT_SECONDS,
    DOWNLOAD_TIMEOUT_SECONDS,
    ENGINE_SWAP_TIMEOUT_SECONDS,
    INSTALL_TIMEOUT_SECONDS,
    PUBLISH_TIMEOUT_SECONDS,
    TEST_TIMEOUT_SECONDS,
    VERSION_TIMEOUT_SECONDS,
)
from insiders.services.release.version import VERSION_BASE
from insiders.tools.http import RealHttpClient

ENGINE_SWAP_SCRIPT = "./scripts/swap-engines.js"


def _display(cmd: list[str]) -> str:
    # Show `npm install`, not `/usr/local/bin/npm.cmd install`.
    return " ".join([Path(cmd[0]).stem, *cmd[1:]])


def _run_tool(
    ctx: StepContext,
    cmd: list[str],
    *,
    timeout: float,
    extra_env: dict[str, str] | None = None,
) -> Result[StepOutput, StepError]:
    shown = _display(cmd)
    ctx.console.print(shown, Style.DIM)
    if ctx.dry_run:
        ctx.console.print("(dry-run) not executed", Style.DIM)
        return Ok(StepOutput())

    result = run_silent(cmd, cwd=ctx.workdir, env=ctx.env.to_process_env(extra_env), timeout=timeout)
    if isinstance(result, Err):
        e = result.error
        if e.timed_out:
            detail = f"timed out after {timeout:g}s"
        elif e.returncode == -1:
            detail = e.stderr.strip()
        else:
            detail = f"exit {e.returncode}"
        return Err(StepError(kind="command_failed", message=f"{shown} failed ({detail})"))
    return Ok(StepOutput())


def _tool(ctx: StepContext, name: str) -> Result[str, StepError]:
    # Look up on the pipeline PATH, which may lead with a provisioned node.
    found = find_tool(name, ctx.env.get("PATH"))
    if isinstance(found, Err) and ctx.dry_run:
        # A dry run skips the install that would have provided it.
        return Ok(name)
    return found


# -----------------------------------------------------------------------------
# Steps
# -----------------------------------------------------------------------------


def checkout(ctx: StepContext) -> Result[StepOutput, StepError]:
    repo = Repository(ctx.workdir)
    url = ctx.settings.repository_url

    if ctx.workdir.exists() and not ctx.workdir.is_dir():
        return Err(StepError(kind="checkout_failed", message=f"not a directory: {ctx.workdir}"))

    if url is not None and not repo.exists():
        if ctx.workdir.exists() and any(ctx.workdir.iterdir()):
            return Err(
                StepError(
                    kind="checkout_failed",
                    message=f"cannot clone into non-empty directory: {ctx.workdir}",
                )
            )
        ctx.console.print(f"git clone {url}", Style.DIM)
        if ctx.dry_run:
            ctx.console.print("(dry-run) not executed", Style.DIM)
            return Ok(StepOutput())
        cloned = clone(url, ctx.workdir)
        if isinstance(cloned, Err):
            return Err(StepError(kind="checkout_failed", message=cloned.error.message))
        repo = cloned.value

    if not repo.exists():
        return Err(
            StepError(
                kind="checkout_failed",
                message=f"not a git checkout: {ctx.workdir}",
                hint="Run inside the package repository or set release.repository",
            )
        )

    if ctx.ref is not None:
        head = repo.head_sha()
        wanted = repo.resolve(ctx.ref)
        if isinstance(wanted, Err):
            fetched = repo.fetch(ctx.ref)
            if isinstance(fetched, Err):
                return Err(StepError(kind="checkout_failed", message=fetched.error.message))
            wanted = repo.resolve(ctx.ref)
            if isinstance(wanted, Err):
                return Err(StepError(kind="checkout_failed", message=wanted.error.message))

        if not (isinstance(head, Ok) and head.value == wanted.value):
            ctx.console.print(f"git checkout {wanted.value}", Style.DIM)
            if ctx.dry_run:
                ctx.console.print("(dry-run) not executed", Style.DIM)
                return Ok(StepOutput())
            checked_out = repo.checkout(wanted.value)
            if isinstance(checked_out, Err):
                return Err(StepError(kind="checkout_failed", message=checked_out.error.message))

    head = repo.head_sha()
    if isinstance(head, Err):
        return Err(StepError(kind="checkout_failed", message=head.error.message))
    ctx.console.success(f"HEAD {head.value}")
    return Ok(StepOutput())


def provision_runtime(ctx: StepContext) -> Result[StepOutput, StepError]:
    cache_root = ctx.settings.cache_dir or default_cache_dir(ctx.env.values)
    path = ctx.env.get("PATH")
    runtime = provision_node(
        wanted=ctx.settings.node_version,
        path=path,
        install_root=cache_root / "node",
        http=RealHttpClient(timeout=DOWNLOAD_TIMEOUT_SECONDS),
        platform=detect_platform(),
        arch=detect_arch(),
        cwd=ctx.workdir,
        console=ctx.console,
        dry_run=ctx.dry_run,
    )
    if isinstance(runtime, Err):
        return runtime

    exports: dict[str, str] = {}
    if runtime.value.bin_dir is not None:
        bin_dir = str(runtime.value.bin_dir)
        exports["PATH"] = f"{bin_dir}{os.pathsep}{path}" if path else bin_dir
        ctx.console.success(f"node {runtime.value.version} installed in {bin_dir}")
    else:
        ctx.console.success(f"node {runtime.value.version}")

    if not ctx.dry_run:
        npm_path = find_tool("npm", exports.get("PATH", path))
        if isinstance(npm_path, Err):
            return npm_path

    npmrc = ctx.temp_dir / ".npmrc"
    try:
        atomic_write_text(npmrc, npm.registry_npmrc(ctx.settings.registry_url))
    except OSError as e:
        return Err(StepError(kind="invalid_input", message=f"cannot write {npmrc}: {e}"))
    ctx.console.print(f"registry: {ctx.settings.registry_url}", Style.DIM)

    exports["NPM_CONFIG_USERCONFIG"] = str(npmrc)
    exports["NODE_AUTH_TOKEN"] = npm.NODE_AUTH_TOKEN_PLACEHOLDER
    return Ok(StepOutput(exports=exports))


def swap_engine(ctx: StepContext) -> Result[StepOutput, StepError]:
    if not (ctx.workdir / ENGINE_SWAP_SCRIPT).is_file():
        return Err(
            StepError(kind="invalid_input", message=f"engine swap script missing: {ENGINE_SWAP_SCRIPT}")
        )
    node = _tool(ctx, "node")
    if isinstance(node, Err):
        return node
    return _run_tool(ctx, [node.value, ENGINE_SWAP_SCRIPT], timeout=ENGINE_SWAP_TIMEOUT_SECONDS)


def dependency_cache_key(workdir: Path, settings: PipelineSettings) -> str:
    return cache_key(
        runner_os=detect_platform().runner_os,
        node_version=settings.node_version,
        prefix=settings.cache_prefix,
        lock_hash=lockfile_hash(workdir),
    )


def _save_cache_hook(store: CacheStore, key: str) -> PostHook:
    def save(ctx: StepContext) -> Result[None, StepError]:
        if ctx.dry_run:
            ctx.console.print(f"(dry-run) would save cache: {key}", Style.DIM)
            return Ok(None)
        saved = store.save(key, ctx.workdir)
        if isinstance(saved, Err):
            return Err(StepError(kind="command_failed", message=str(saved.error)))
        if saved.value:
            ctx.console.success(f"cache saved: {key}")
        else:
            ctx.console.info(f"cache entry already exists: {key}")
        return Ok(None)

    return save


def restore_cache(ctx: StepContext) -> Result[StepOutput, StepError]:
    store = CacheStore(ctx.settings.cache_dir or default_cache_dir(ctx.env.values))
    try:
        key = dependency_cache_key(ctx.workdir, ctx.settings)
    except OSError as e:
        ctx.console.warning(f"cannot hash lockfiles, continuing without cache: {e}")
        return Ok(StepOutput(exports={"CACHE_HIT": "false"}))
    ctx.console.print(f"key: {key}", Style.DIM)

    hit = False
    if ctx.dry_run:
        hit = store.contains(key)
    else:
        restored = store.restore(key, ctx.workdir)
        match restored:
            case Ok(value):
                hit = value
            case Err(error):
                ctx.console.warning(f"{error}; continuing without cache")

    if hit:
        ctx.console.success("cache hit")
    else:
        ctx.console.info("cache miss")

    return Ok(
        StepOutput(
            exports={"CACHE_HIT": "true" if hit else "false", "CACHE_KEY": key},
            post=None if hit else _save_cache_hook(store, key),
        )
    )


def install_dependencies(ctx: StepContext) -> Result[StepOutput, StepError]:
    npm_path = _tool(ctx, "npm")
    if isinstance(npm_path, Err):
        return npm_path
    return _run_tool(ctx, npm.install_cmd(npm_path.value), timeout=INSTALL_TIMEOUT_SECONDS)


def build(ctx: StepContext) -> Result[StepOutput, StepError]:
    npm_path = _tool(ctx, "npm")
    if isinstance(npm_path, Err):
        return npm_path
    return _run_tool(ctx, npm.run_script_cmd(npm_path.value, "build"), timeout=BUILD_TIMEOUT_SECONDS)


def run_tests(ctx: StepContext) -> Result[StepOutput, StepError]:
    npm_path = _tool(ctx, "npm")
    if isinstance(npm_path, Err):
        return npm_path
    return _run_tool(ctx, npm.run_script_cmd(npm_path.value, "test"), timeout=TEST_TIMEOUT_SECONDS)


def resolve_version(ctx: StepContext) -> Result[StepOutput, StepError]:
    sha = Repository(ctx.workdir).short_sha()
    if isinstance(sha, Err):
        return Err(StepError(kind="command_failed", message=sha.error.message))
    ctx.console.print(f"SHA_SHORT={sha.value}", Style.DIM)
    return Ok(StepOutput(exports={"SHA_SHORT": sha.value}))


def set_version(ctx: StepContext) -> Result[StepOutput, StepError]:
    version = ctx.version()
    if isinstance(version, Err):
        return version
    npm_path = _tool(ctx, "npm")
    if isinstance(npm_path, Err):
        return npm_path
    ctx.console.info(f"version: {version.value}")
    return _run_tool(ctx, npm.version_cmd(npm_path.value, version.value), timeout=VERSION_TIMEOUT_SECONDS)


def publish(ctx: StepContext) -> Result[StepOutput, StepError]:
    npm_path = _tool(ctx, "npm")
    if isinstance(npm_path, Err):
        return npm_path

    token = ctx.secrets.npm_token
    if token is None:
        if not ctx.dry_run:
            return Err(
                StepError(
                    kind="auth_missing",
                    message="npm token missing",
                    hint="Set NPM_TOKEN to an automation token with publish rights",
                )
            )
        ctx.console.warning("NPM_TOKEN is not set; a real run would fail here")

    return _run_tool(
        ctx,
        npm.publish_cmd(npm_path.value, ctx.settings.channel),
        timeout=PUBLISH_TIMEOUT_SECONDS,
        extra_env={"NODE_AUTH_TOKEN": token} if token is not None else None,
    )


def notify(ctx: StepContext) -> Result[StepOutput, StepError]:
    version = ctx.version()
    if isinstance(version, Err):
        return version
    gh = _tool(ctx, "gh")
    if isinstance(gh, Err):
        return gh

    result = dispatch_version(
        gh=gh.value,
        target=ctx.settings.dispatch,
        version=version.value,
        token=ctx.secrets.dispatch_token,
        base_env=ctx.env.to_process_env(),
        cwd=ctx.workdir,
        console=ctx.console,
        dry_run=ctx.dry_run,
    )
    if isinstance(result, Err):
        return result
    if not ctx.dry_run:
        ctx.console.success(f"dispatched {ctx.settings.dispatch.workflow} with {version.value}")
    return Ok(StepOutput())


# -----------------------------------------------------------------------------
# Pipeline definition
# -----------------------------------------------------------------------------


def build_steps(settings: PipelineSettings) -> tuple[Step, ...]:
    channel = settings.channel
    target = settings.dispatch
    return (
        Step("checkout", "Checkout", checkout, commands=("git checkout <sha>",)),
        Step(
            "runtime",
            f"Use Node.js {settings.node_version}",
            provision_runtime,
            commands=("node --version",),
        ),
        Step(
            "engine",
            "Use the `stable` engine",
            swap_engine,
            commands=(f"node {ENGINE_SWAP_SCRIPT}",),
        ),
        Step("cache", "Cache node_modules", restore_cache),
        Step("install", "Install dependencies", install_dependencies, commands=("npm install",)),
        Step("build", "Build", build, commands=("npm run build",)),
        Step(
            "test",
            "Test",
            run_tests,
            attempts=settings.test_attempts,
            commands=("npm run test",),
        ),
        Step(
            "resolve-version",
            "Resolve version",
            resolve_version,
            commands=("git rev-parse --short HEAD",),
        ),
        Step(
            "set-version",
            f"Version based on commit: {VERSION_BASE}-{channel}.<sha>",
            set_version,
            commands=(f"npm version {VERSION_BASE}-{channel}.<sha> --force --no-git-tag-version",),
        ),
        Step("publish", "Publish", publish, commands=(f"npm publish --tag {channel}",)),
        Step(
            "notify",
            "Notify downstream",
            notify,
            commands=(
                f"gh workflow run {target.workflow} --repo {target.repo} --ref {target.ref} "
                f"-f {target.input_name}=<version>",
            ),
        ),
    )
