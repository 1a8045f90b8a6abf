import asyncio
import io
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from unittest.mock import AsyncMock

import platformdirs
import pytest

from avalanche_installer.download.interfaces import ReleaseInfo
from avalanche_installer.exceptions import DownloadError, ObjectStoreError
from avalanche_installer.storage.interfaces import StoreObject

_ASYNC_NETWORK_BLOCK_MSG = (
    "Async network access is blocked during tests. Mock aiohttp.ClientSession."
)


async def _async_block_network(*_args, **_kwargs):
    """
    Prevent async network calls during tests by raising a RuntimeError.

    Raises:
        RuntimeError: `_ASYNC_NETWORK_BLOCK_MSG` explaining that async network access is blocked.
    """
    raise RuntimeError(_ASYNC_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """Register the markers used across the suite."""
    config.addinivalue_line("markers", "asyncio: mark test as an asyncio test")
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line("markers", "integration: multi-component tests")


def pytest_runtest_setup():
    """Replace aiohttp's HTTP entry points with a blocker so no test reaches the network."""
    import aiohttp

    aiohttp.request = _async_block_network
    aiohttp.ClientSession.request = _async_block_network  # type: ignore[assignment]
    aiohttp.ClientSession.get = _async_block_network  # type: ignore[assignment]
    aiohttp.ClientSession.put = _async_block_network  # type: ignore[assignment]
    aiohttp.ClientSession.post = _async_block_network  # type: ignore[assignment]


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point config lookups and scratch paths into a per-test temp tree.

    Patches platformdirs and the config module constants, sets ``tempfile.tempdir``
    so random scratch paths land inside the tree, and clears token and log-level
    environment variables.
    """
    base = tmp_path_factory.mktemp("avalanche-installer")
    config_dir = base / "config"
    scratch_dir = base / "scratch"
    for path in (config_dir, scratch_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("AVALANCHE_INSTALLER_LOG_LEVEL", raising=False)
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(tempfile, "tempdir", str(scratch_dir))

    import avalanche_installer.config as config_module

    monkeypatch.setattr(config_module, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(
        config_module, "CONFIG_FILE", str(config_dir / "config.yaml")
    )


@pytest.fixture(autouse=True)
def instant_sleep(monkeypatch):
    """
    Make asyncio.sleep instant so retry backoff does not slow the suite.

    Returns the AsyncMock so tests can assert on the requested delays.
    """
    mock_sleep = AsyncMock()
    monkeypatch.setattr(asyncio, "sleep", mock_sleep)
    return mock_sleep


@pytest.fixture
def scratch_dir():
    return Path(tempfile.gettempdir())


# =============================================================================
# Archive builders
# =============================================================================


def _write_tar_gz(path: Path, members: Dict[str, bytes]) -> Path:
    with tarfile.open(path, "w:gz") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return path


def _write_zip(path: Path, members: Dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


@pytest.fixture
def make_tar_gz(tmp_path):
    """Factory building a .tar.gz under tmp_path from a {member name: bytes} mapping."""

    def _make(members: Dict[str, bytes], name: str = "archive.tar.gz") -> Path:
        return _write_tar_gz(tmp_path / name, members)

    return _make


@pytest.fixture
def make_zip(tmp_path):
    """Factory building a .zip under tmp_path from a {member name: bytes} mapping."""

    def _make(members: Dict[str, bytes], name: str = "archive.zip") -> Path:
        return _write_zip(tmp_path / name, members)

    return _make


# =============================================================================
# Fakes
# =============================================================================


class FakeReleaseClient:
    """
    Stand-in for AsyncGitHubClient.

    `releases` is consumed one entry per get_latest_release call; an Exception entry is
    raised instead of returned, and the last entry repeats once the list runs out.
    `archives` maps download URLs to the bytes written by download_file.
    """

    def __init__(
        self,
        releases: Optional[Sequence[object]] = None,
        archives: Optional[Dict[str, bytes]] = None,
    ) -> None:
        self.releases = list(releases or [])
        self.archives = dict(archives or {})
        self.release_calls: List[tuple] = []
        self.download_calls: List[tuple] = []

    async def get_latest_release(self, org: str, repo: str) -> ReleaseInfo:
        self.release_calls.append((org, repo))
        if not self.releases:
            raise DownloadError("no release configured", is_retryable=True)
        index = min(len(self.release_calls) - 1, len(self.releases) - 1)
        entry = self.releases[index]
        if isinstance(entry, BaseException):
            raise entry
        return entry  # type: ignore[return-value]

    async def download_file(self, url: str, target_path) -> Path:
        self.download_calls.append((url, Path(target_path)))
        if url not in self.archives:
            raise DownloadError("HTTP error 404", url=url, status_code=404)
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.archives[url])
        return target

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_exc):
        return None


class InMemoryObjectStore:
    """
    Dict-backed ObjectStore recording every call.

    `failures` maps an operation name ("get_object", "list_objects", "put_object") to
    a list of exceptions raised, in order, by the next calls of that operation.
    """

    def __init__(self, objects: Optional[Dict[tuple, bytes]] = None) -> None:
        self.objects: Dict[tuple, bytes] = dict(objects or {})
        self.buckets = {bucket for bucket, _ in self.objects}
        self.failures: Dict[str, List[Exception]] = {}
        self.get_calls: List[tuple] = []
        self.list_calls: List[tuple] = []
        self.put_calls: List[tuple] = []

    def _maybe_fail(self, operation: str) -> None:
        pending = self.failures.get(operation)
        if pending:
            raise pending.pop(0)

    async def get_object(self, bucket: str, key: str, local_path) -> None:
        self.get_calls.append((bucket, key))
        self._maybe_fail("get_object")
        if (bucket, key) not in self.objects:
            raise ObjectStoreError("NoSuchKey", bucket=bucket, key=key)
        Path(local_path).write_bytes(self.objects[(bucket, key)])

    async def put_object(self, local_path, bucket: str, key: str) -> None:
        self.put_calls.append((bucket, key))
        self._maybe_fail("put_object")
        self.objects[(bucket, key)] = Path(local_path).read_bytes()

    async def list_objects(self, bucket: str, prefix: Optional[str] = None):
        self.list_calls.append((bucket, prefix))
        self._maybe_fail("list_objects")
        return [
            StoreObject(key=key, size=len(data))
            for (b, key), data in sorted(self.objects.items())
            if b == bucket and key.startswith(prefix or "")
        ]

    async def delete_objects(self, bucket: str, keys=None) -> None:
        for b, key in list(self.objects):
            if b == bucket and (keys is None or key in keys):
                del self.objects[(b, key)]

    async def create_bucket(self, bucket: str) -> None:
        self.buckets.add(bucket)

    async def delete_bucket(self, bucket: str) -> None:
        self.buckets.discard(bucket)


@pytest.fixture
def release_client_factory():
    return FakeReleaseClient


@pytest.fixture
def object_store():
    return InMemoryObjectStore()
