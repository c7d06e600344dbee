"""Runner operating system and CPU detection.

The dependency cache key starts with the OS name, spelled the way CI
runners report it (Linux, macOS, Windows). The Node.js download picks its
archive from the OS and CPU architecture.
"""

from __future__ import annotations

import os as _os
import platform as _platform
import sys as _sys
from enum import Enum, auto
from functools import lru_cache

__all__ = ["Arch", "Platform", "detect_arch", "detect_platform"]


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def runner_os(self) -> str:
        """Name used in cache keys."""
        match self:
            case Platform.LINUX:
                return "Linux"
            case Platform.MACOS:
                return "macOS"
            case Platform.WINDOWS:
                return "Windows"
            case _:
                return "Unknown"

    def exe_name(self, name: str) -> str:
        return f"{name}.exe" if self == Platform.WINDOWS else name


class Arch(Enum):
    """CPU architecture."""

    X64 = auto()
    ARM64 = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the current operating system."""
    if _sys.platform.startswith("linux"):
        return Platform.LINUX
    if _sys.platform == "darwin":
        return Platform.MACOS
    if _sys.platform in ("win32", "cygwin"):
        return Platform.WINDOWS
    return Platform.UNKNOWN


@lru_cache(maxsize=1)
def detect_arch() -> Arch:
    """Detect the current CPU architecture."""
    # platform.machine() can be slow on Windows; the runner env has the answer.
    if detect_platform() == Platform.WINDOWS:
        machine = (
            _os.environ.get("PROCESSOR_ARCHITEW6432")
            or _os.environ.get("PROCESSOR_ARCHITECTURE")
            or ""
        ).lower()
    else:
        machine = _platform.machine().lower()
    if machine in ("x86_64", "amd64"):
        return Arch.X64
    if machine in ("aarch64", "arm64"):
        return Arch.ARM64
    return Arch.UNKNOWN
