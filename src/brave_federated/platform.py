"""Platform identifier reported in every collection slot ping."""

from __future__ import annotations

import platform as _platform
import sys

_WINDOWS_ARCH = {
    "amd64": "winx64",
    "x86_64": "winx64",
    "x86": "winia32",
    "i386": "winia32",
    "i686": "winia32",
    "arm64": "winarm64",
    "aarch64": "winarm64",
}


def get_platform_identifier(system: str | None = None, machine: str | None = None) -> str:
    """Return the short platform string, e.g. ``winx64``, ``osx-arm64`` or ``linux``.

    *system* and *machine* default to the running interpreter's values.
    """
    system = (system if system is not None else _platform.system()).lower()
    machine = (machine if machine is not None else _platform.machine()).lower()

    if system == "windows":
        if machine in _WINDOWS_ARCH:
            return _WINDOWS_ARCH[machine]
        return "winx64" if sys.maxsize > 2**32 else "winia32"
    if system == "darwin":
        return "osx-arm64" if machine in ("arm64", "aarch64") else "osx"
    if system == "linux":
        return "linux"
    return system or "unknown"
