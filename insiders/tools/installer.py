"""Archive extraction for downloaded runtimes.

Supports .tar.gz, .tar.xz and .zip. The archive's top-level directory can
be stripped, like `tar --strip-components`.
"""

from __future__ import annotations

import shutil
import stat
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from insiders.core.result import Err, Ok, Result

__all__ = ["InstallError", "Installer"]


@dataclass(frozen=True, slots=True)
class InstallError:
    archive: Path
    message: str

    def __str__(self) -> str:
        return f"{self.message}: {self.archive}"


def _strip(name: str, components: int) -> str | None:
    parts = PurePosixPath(name.replace("\\", "/")).parts
    if len(parts) <= components:
        return None
    return PurePosixPath(*parts[components:]).as_posix()


class Installer:
    def install(
        self, archive: Path, install_dir: Path, *, strip_components: int = 0
    ) -> Result[Path, InstallError]:
        """Replace install_dir with the contents of archive."""
        if not archive.is_file():
            return Err(InstallError(archive=archive, message="Archive not found"))

        name = archive.name.lower()
        try:
            if install_dir.exists():
                shutil.rmtree(install_dir)
            install_dir.mkdir(parents=True)
            if name.endswith((".tar.gz", ".tgz", ".tar.xz", ".txz")):
                self._extract_tar(archive, install_dir, strip_components)
            elif name.endswith(".zip"):
                self._extract_zip(archive, install_dir, strip_components)
            else:
                return Err(InstallError(archive=archive, message="Unsupported archive format"))
        except tarfile.TarError as e:
            return Err(InstallError(archive=archive, message=f"Tar extraction failed: {e}"))
        except zipfile.BadZipFile as e:
            return Err(InstallError(archive=archive, message=f"Invalid zip file: {e}"))
        except OSError as e:
            return Err(InstallError(archive=archive, message=f"IO error: {e}"))
        return Ok(install_dir)

    def _extract_tar(self, archive: Path, install_dir: Path, strip_components: int) -> None:
        def strip_filter(member: tarfile.TarInfo, dest: str) -> tarfile.TarInfo | None:
            new_name = _strip(member.name, strip_components)
            if new_name is None:
                return None
            changes: dict[str, str] = {"name": new_name}
            if member.islnk():
                # Hard link targets are archive paths too.
                link = _strip(member.linkname, strip_components)
                if link is None:
                    return None
                changes["linkname"] = link
            # The "data" filter keeps symlinks (node's bin/npm) only if they stay inside dest.
            return tarfile.data_filter(member.replace(**changes, deep=False), dest)

        with tarfile.open(archive, "r:*") as tar:
            tar.extractall(install_dir, filter=strip_filter)

    def _extract_zip(self, archive: Path, install_dir: Path, strip_components: int) -> None:
        root = install_dir.resolve()
        with zipfile.ZipFile(archive, "r") as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                rel = _strip(info.filename, strip_components)
                if rel is None or (info.external_attr >> 16) & 0o170000 == stat.S_IFLNK:
                    continue
                target = install_dir / rel
                if not target.resolve().is_relative_to(root):
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                mode = (info.external_attr >> 16) & 0o777
                if mode:
                    target.chmod(mode)
