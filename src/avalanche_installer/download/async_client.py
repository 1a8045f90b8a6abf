"""
Async HTTP client for the GitHub release API and release downloads.

This module provides asynchronous HTTP operations using aiohttp,
with session management, connection pooling, and error classification.
"""

import asyncio
import importlib.metadata
import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles  # type: ignore[import-untyped]
import aiohttp
from aiohttp import ClientSession, ClientTimeout, TCPConnector

from avalanche_installer.constants import (
    APP_NAME,
    BYTES_PER_MEGABYTE,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_REQUEST_TIMEOUT,
    FILE_SIZE_MB_LOGGING_THRESHOLD,
    GITHUB_API_BASE,
    GITHUB_API_VERSION,
    HTTP_STATUS_ERROR_THRESHOLD,
    HTTP_STATUS_RETRY_THRESHOLD,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    LATEST_RELEASE_PATH,
)
from avalanche_installer.exceptions import DownloadError
from avalanche_installer.log_utils import logger

from .interfaces import Pathish, ReleaseInfo

_USER_AGENT_CACHE: Optional[str] = None


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `avalanche-installer/{version}`, with `unknown` when the package is not installed.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version(APP_NAME)
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"
        _USER_AGENT_CACHE = f"{APP_NAME}/{app_version}"

    return _USER_AGENT_CACHE


def _is_retryable_status(status: int) -> bool:
    return (
        status >= HTTP_STATUS_RETRY_THRESHOLD
        or status == HTTP_STATUS_TOO_MANY_REQUESTS
    )


class AsyncGitHubClient:
    """
    Asynchronous GitHub client using aiohttp.

    Provides async methods for:
    - Fetching the latest release of a repository
    - Downloading release archives to disk

    Example:
        async with AsyncGitHubClient() as client:
            info = await client.get_latest_release("ava-labs", "avalanchego")
    """

    def __init__(
        self,
        github_token: Optional[str] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        api_base: str = GITHUB_API_BASE,
        connector_limit: int = 10,
    ) -> None:
        """
        Initialize the async GitHub client.

        Parameters:
            github_token (Optional[str]): GitHub personal access token for authentication.
            timeout (float): Total request timeout in seconds.
            api_base (str): Base URL of the release API.
            connector_limit (int): Maximum total connections in the pool.
        """
        self.github_token = github_token
        self.timeout = ClientTimeout(total=timeout)
        self.api_base = api_base.rstrip("/")
        self.connector_limit = max(1, connector_limit)
        self._session: Optional[ClientSession] = None

    async def __aenter__(self) -> "AsyncGitHubClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        """
        Ensure a session exists, creating one if needed.

        Returns:
            ClientSession: The active aiohttp session.
        """
        if self._session is None or self._session.closed:
            connector = TCPConnector(
                limit=self.connector_limit,
                enable_cleanup_closed=True,
            )
            self._session = ClientSession(
                connector=connector,
                timeout=self.timeout,
                headers=self._get_default_headers(),
            )
        return self._session

    def _get_default_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": get_user_agent(),
        }
        if self.github_token:
            headers["Authorization"] = f"token {self.github_token}"
        return headers

    async def close(self) -> None:
        """Close the client session and release resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def latest_release_url(self, org: str, repo: str) -> str:
        return f"{self.api_base}/{LATEST_RELEASE_PATH.format(org=org, repo=repo)}"

    async def get_latest_release(self, org: str, repo: str) -> ReleaseInfo:
        """
        Fetch the latest published release of a repository.

        Parameters:
            org (str): Repository owner.
            repo (str): Repository name.

        Returns:
            ReleaseInfo: The decoded release; its tag may be None when the API is inconsistent.

        Raises:
            DownloadError: On HTTP, network or decoding failures. Network failures, timeouts,
                decoding failures, 5xx and 429 responses are flagged retryable.
        """
        url = self.latest_release_url(org, repo)
        logger.info(f"fetching {url}")
        session = await self._ensure_session()

        try:
            async with session.get(url) as response:
                if response.status >= HTTP_STATUS_ERROR_THRESHOLD:
                    raise DownloadError(
                        f"HTTP error {response.status}",
                        url=url,
                        status_code=response.status,
                        is_retryable=_is_retryable_status(response.status),
                    )
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Network error fetching release from {url}: {e}")
            raise DownloadError(
                f"Network error: {e}", url=url, is_retryable=True
            ) from e

        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, ValueError) as e:
            raise DownloadError(
                "failed to decode release response",
                url=url,
                is_retryable=True,
                details=str(e),
            ) from e

        if not isinstance(payload, dict):
            raise DownloadError(
                "unexpected release payload",
                url=url,
                is_retryable=True,
                details=f"expected object, got {type(payload).__name__}",
            )
        return ReleaseInfo.from_api(payload)

    async def download_file(
        self,
        url: str,
        target_path: Pathish,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> Path:
        """
        Download a file to the given path, writing to a temp file and replacing atomically.

        Parameters:
            url (str): Source URL to download.
            target_path (Pathish): Destination file path; parent directories are created if missing.
            chunk_size (int): Number of bytes to read per chunk.

        Returns:
            Path: The destination path.

        Raises:
            DownloadError: On HTTP, network or filesystem failures. The temp file is removed on error.
        """
        session = await self._ensure_session()
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        temp_path = target.with_name(
            f"{target.name}.tmp.{os.getpid()}.{int(time.time() * 1000)}"
        )

        logger.info(f"downloading the file via {url}")
        try:
            start_time = time.time()
            downloaded = 0
            async with session.get(url) as response:
                if response.status >= HTTP_STATUS_ERROR_THRESHOLD:
                    raise DownloadError(
                        f"HTTP error {response.status}",
                        url=url,
                        status_code=response.status,
                        is_retryable=_is_retryable_status(response.status),
                    )

                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(chunk_size):
                        await f.write(chunk)
                        downloaded += len(chunk)

            temp_path.replace(target)

            elapsed = time.time() - start_time
            file_size_mb = downloaded / BYTES_PER_MEGABYTE
            logger.debug(f"Downloaded {url} in {elapsed:.2f}s ({file_size_mb:.2f} MB)")
            if file_size_mb >= FILE_SIZE_MB_LOGGING_THRESHOLD:
                logger.info(f"Downloaded: {target.name} ({file_size_mb:.1f} MB)")
            else:
                logger.info(f"Downloaded: {target.name} ({downloaded} bytes)")
            return target

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _discard(temp_path)
            logger.error(f"Download failed for {url}: {e}")
            raise DownloadError(
                f"Download failed: {e}", url=url, is_retryable=True
            ) from e
        except OSError as e:
            _discard(temp_path)
            logger.error(f"Filesystem error saving {target}: {e}")
            raise DownloadError(f"Filesystem error: {e}", url=url) from e
        except DownloadError:
            _discard(temp_path)
            raise


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"Could not remove temp file {path}: {e}")
