"""Dependency cache keyed by runner OS, runtime, prefix and lockfile hash.

Entries are `<key>.tar.gz` archives of node_modules in a cache directory.
An entry is written once and never replaced; eviction is left to whoever
owns the directory.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import tarfile
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from insiders.core.result import Err, Ok, Result
from insiders.platform.files import replacing

__all__ = [
    "CACHED_DIR_NAME",
    "LOCKFILE_NAME",
    "CacheError",
    "CacheStore",
    "cache_key",
    "default_cache_dir",
    "find_lockfiles",
    "lockfile_hash",
]

LOCKFILE_NAME = "package-lock.json"
CACHED_DIR_NAME = "node_modules"

# Installed packages ship their own lockfiles; they must not feed the key.
_EXCLUDED_DIRS = frozenset({"node_modules", ".git"})
_HASH_CHUNK = 1024 * 1024


@dataclass(frozen=True, slots=True)
class CacheError:
    key: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} ({self.key})"


def find_lockfiles(root: Path) -> list[Path]:
    """All package-lock.json files under root, sorted by relative POSIX path."""
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in _EXCLUDED_DIRS]
        if LOCKFILE_NAME in filenames:
            found.append(Path(dirpath) / LOCKFILE_NAME)
    return sorted(found, key=lambda p: p.relative_to(root).as_posix())


def _sha256_file(path: Path) -> bytes:
    h = hashlib.sha256()
    with path.open("rb") as f:
        while chunk := f.read(_HASH_CHUNK):
            h.update(chunk)
    return h.digest()


def lockfile_hash(root: Path) -> str:
    """Hash of every lockfile under root.

    Each file is hashed on its own, then the digests are hashed together in
    path order. Returns an empty string when there is no lockfile.
    """
    files = find_lockfiles(root)
    if not files:
        return ""
    combined = hashlib.sha256()
    for path in files:
        combined.update(_sha256_file(path))
    return combined.hexdigest()


def cache_key(*, runner_os: str, node_version: str, prefix: str, lock_hash: str) -> str:
    return f"{runner_os}-{node_version}-{prefix}-{CACHED_DIR_NAME}-{lock_hash}"


def default_cache_dir(environ: Mapping[str, str]) -> Path:
    xdg = environ.get("XDG_CACHE_HOME")
    base = Path(xdg) if xdg else Path.home() / ".cache"
    return base / "insiders"


class CacheStore:
    """Directory-backed cache of node_modules archives."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def archive_path(self, key: str) -> Path:
        return self.root / f"{key}.tar.gz"

    def contains(self, key: str) -> bool:
        return self.archive_path(key).is_file()

    def restore(self, key: str, workdir: Path) -> Result[bool, CacheError]:
        """Extract the entry for key into workdir.

        Returns:
            Ok(True) on hit, Ok(False) on miss, Err(CacheError) if the entry
            exists but could not be extracted. A corrupt entry is deleted.
        """
        archive = self.archive_path(key)
        if not archive.is_file():
            return Ok(False)

        target = workdir / CACHED_DIR_NAME
        try:
            if target.exists():
                shutil.rmtree(target)
            with tarfile.open(archive, "r:gz") as tar:
                # "data" rejects absolute paths, links escaping workdir and device files.
                tar.extractall(workdir, filter="data")
        except tarfile.TarError as e:
            # Drop the entry so the save after this run writes a good one.
            archive.unlink(missing_ok=True)
            shutil.rmtree(target, ignore_errors=True)
            return Err(CacheError(key=key, message=f"corrupt cache entry removed: {e}"))
        except OSError as e:
            return Err(CacheError(key=key, message=f"cache restore failed: {e}"))

        return Ok(True)

    def save(self, key: str, workdir: Path) -> Result[bool, CacheError]:
        """Archive workdir/node_modules under key.

        Returns:
            Ok(True) if a new entry was written, Ok(False) if key already
            existed, Err(CacheError) on failure.
        """
        if self.contains(key):
            return Ok(False)

        source = workdir / CACHED_DIR_NAME
        if not source.is_dir():
            return Err(CacheError(key=key, message=f"nothing to cache: {source} does not exist"))

        try:
            with replacing(self.archive_path(key)) as tmp_path:
                with tarfile.open(tmp_path, "w:gz") as tar:
                    tar.add(source, arcname=CACHED_DIR_NAME)
        except (tarfile.TarError, OSError) as e:
            return Err(CacheError(key=key, message=f"cache save failed: {e}"))

        return Ok(True)
