"""
Architecture and operating-system handling.

Both products publish archives for the same small set of labels, so a single
label enum type serves them all. Host detection is wrapped in HostInfo so that
callers (and tests) can pass a fixed host instead of reading the running one.
"""

import os
import platform
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type, TypeVar, Union

from avalanche_installer.exceptions import UnknownPlatformError

L = TypeVar("L", bound="LabelEnum")


class LabelEnum(str, Enum):
    """String enum whose members format as, and parse from, their release labels."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls: Type[L], label: str) -> L:
        """
        Parse a release label into a member.

        Raises:
            ValueError: If the label does not name a member.
        """
        normalized = label.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        valid = ", ".join(member.value for member in cls)
        raise ValueError(f"unknown {cls.__name__} {label!r} (expected one of {valid})")


class Arch(LabelEnum):
    AMD64 = "amd64"
    ARM64 = "arm64"


class OperatingSystem(LabelEnum):
    MACOS = "macos"
    LINUX = "linux"
    WINDOWS = "win"


# platform.machine() values seen in the wild
_MACHINE_TO_ARCH = {
    "x86_64": Arch.AMD64,
    "amd64": Arch.AMD64,
    "aarch64": Arch.ARM64,
    "arm64": Arch.ARM64,
}


@dataclass(frozen=True)
class HostInfo:
    """Identification of the machine the installer runs on."""

    machine: str
    """Native architecture identifier, as reported by platform.machine()"""

    system: str
    """Operating system name, as reported by platform.system()"""

    posix: bool = True
    """Whether the host is a POSIX system"""

    @classmethod
    def detect(cls) -> "HostInfo":
        return cls(
            machine=platform.machine(),
            system=platform.system(),
            posix=os.name == "posix",
        )


def _coerce(enum_cls: Type[L], value: Union[L, str]) -> L:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls.parse(str(value))
    except ValueError as e:
        raise UnknownPlatformError(str(e)) from e


def resolve_arch(arch: Union[Arch, str, None], host: Optional[HostInfo] = None) -> str:
    """
    Resolve the release architecture label.

    Parameters:
        arch: Explicit architecture; when None the host machine is mapped instead.
        host: Host to inspect; defaults to the running machine.

    Returns:
        str: "amd64" or "arm64", or an empty string when the host architecture is not recognised.
    """
    if arch is not None:
        return str(_coerce(Arch, arch))
    host = host or HostInfo.detect()
    mapped = _MACHINE_TO_ARCH.get(host.machine.lower())
    return str(mapped) if mapped is not None else ""


def resolve_os(
    os_name: Union[OperatingSystem, str, None], host: Optional[HostInfo] = None
) -> OperatingSystem:
    """
    Resolve the release operating system.

    macOS maps to MACOS, Windows to WINDOWS and every other POSIX system is
    treated as LINUX.

    Raises:
        UnknownPlatformError: If the host is neither POSIX nor Windows, or an explicit value is invalid.
    """
    if os_name is not None:
        return _coerce(OperatingSystem, os_name)
    host = host or HostInfo.detect()
    system = host.system.lower()
    if system == "darwin":
        return OperatingSystem.MACOS
    if system == "windows":
        return OperatingSystem.WINDOWS
    if host.posix:
        return OperatingSystem.LINUX
    raise UnknownPlatformError(f"unknown platform '{host.system}'", os_name=host.system)
