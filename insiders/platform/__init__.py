"""Platform abstraction layer."""

from .detection import Arch, Platform, detect_arch, detect_platform
from .files import atomic_write_text, replacing
from .process import ProcessError, run, run_silent

__all__ = [
    # detection
    "Arch",
    "Platform",
    "detect_arch",
    "detect_platform",
    # files
    "atomic_write_text",
    "replacing",
    # process
    "ProcessError",
    "run",
    "run_silent",
]
