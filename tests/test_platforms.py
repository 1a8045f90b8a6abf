"""
Tests for architecture/OS labels and host detection.
"""

import pytest

from avalanche_installer.exceptions import UnknownPlatformError
from avalanche_installer.platforms import (
    Arch,
    HostInfo,
    OperatingSystem,
    resolve_arch,
    resolve_os,
)

pytestmark = [pytest.mark.unit]


class TestLabelEnum:
    def test_str_is_release_label(self):
        assert str(Arch.AMD64) == "amd64"
        assert str(Arch.ARM64) == "arm64"
        assert str(OperatingSystem.MACOS) == "macos"
        assert str(OperatingSystem.LINUX) == "linux"
        assert str(OperatingSystem.WINDOWS) == "win"

    @pytest.mark.parametrize("member", list(Arch) + list(OperatingSystem))
    def test_parse_inverts_str(self, member):
        assert type(member).parse(str(member)) is member

    def test_parse_is_case_insensitive(self):
        assert Arch.parse(" AMD64 ") is Arch.AMD64

    def test_parse_unknown_label(self):
        with pytest.raises(ValueError, match="unknown Arch"):
            Arch.parse("riscv64")
        with pytest.raises(ValueError, match="unknown OperatingSystem"):
            OperatingSystem.parse("windows")


class TestResolveArch:
    @pytest.mark.parametrize(
        "machine,expected",
        [
            ("x86_64", "amd64"),
            ("AMD64", "amd64"),
            ("aarch64", "arm64"),
            ("arm64", "arm64"),
            ("riscv64", ""),
            ("i686", ""),
        ],
    )
    def test_host_mapping(self, machine, expected):
        host = HostInfo(machine=machine, system="Linux")
        assert resolve_arch(None, host) == expected

    def test_explicit_value_wins_over_host(self):
        host = HostInfo(machine="x86_64", system="Linux")
        assert resolve_arch(Arch.ARM64, host) == "arm64"
        assert resolve_arch("arm64", host) == "arm64"

    def test_invalid_explicit_value(self):
        with pytest.raises(UnknownPlatformError):
            resolve_arch("sparc")


class TestResolveOs:
    @pytest.mark.parametrize(
        "system,expected",
        [
            ("Darwin", OperatingSystem.MACOS),
            ("Linux", OperatingSystem.LINUX),
            ("FreeBSD", OperatingSystem.LINUX),
            ("Windows", OperatingSystem.WINDOWS),
        ],
    )
    def test_host_mapping(self, system, expected):
        host = HostInfo(machine="x86_64", system=system, posix=system != "Windows")
        assert resolve_os(None, host) is expected

    def test_non_posix_unknown_host(self):
        host = HostInfo(machine="x86_64", system="Plan9", posix=False)
        with pytest.raises(UnknownPlatformError, match="Plan9"):
            resolve_os(None, host)

    def test_explicit_string(self):
        assert resolve_os("win") is OperatingSystem.WINDOWS

    def test_detect_reads_running_host(self, mocker):
        mocker.patch("platform.machine", return_value="aarch64")
        mocker.patch("platform.system", return_value="Darwin")
        host = HostInfo.detect()
        assert host.machine == "aarch64"
        assert host.system == "Darwin"
