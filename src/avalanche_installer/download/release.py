"""
Release tag resolution.

The GitHub release API occasionally answers without a tag, and the latest
release may be a prerelease. Neither is an error here: resolution always ends
with a usable tag, falling back to the product's pinned default.
"""

from typing import Optional, Protocol

from avalanche_installer.constants import LATEST_TAG_SENTINEL
from avalanche_installer.exceptions import DownloadError, RetriesExhaustedError
from avalanche_installer.log_utils import logger
from avalanche_installer.retry import retry_with_backoff

from .interfaces import ReleaseInfo


class ReleaseSource(Protocol):
    """Anything that can report the latest release of a repository."""

    async def get_latest_release(self, org: str, repo: str) -> ReleaseInfo: ...


def _retry_release_errors(error: BaseException) -> bool:
    # Every release API failure is transient from the resolver's point of view
    return isinstance(error, DownloadError)


async def resolve_tag(
    org: str,
    repo: str,
    pinned_default: str,
    explicit_tag: Optional[str] = None,
    *,
    client: ReleaseSource,
    max_attempts: int,
    base_delay: float,
) -> str:
    """
    Resolve the release tag to install.

    Parameters:
        org (str): Repository owner.
        repo (str): Repository name.
        pinned_default (str): Tag used whenever the API cannot supply a stable release.
        explicit_tag (Optional[str]): Caller override; "latest" maps to `pinned_default`.
        client (ReleaseSource): Release API client.
        max_attempts (int): Maximum number of release API calls.
        base_delay (float): Backoff unit in seconds between calls.

    Returns:
        str: A non-empty tag.
    """
    if explicit_tag is not None:
        if explicit_tag == LATEST_TAG_SENTINEL:
            # the release host has no real "latest" tag
            logger.warning(f"falling back '{LATEST_TAG_SENTINEL}' to {pinned_default}")
            return pinned_default
        if explicit_tag.strip():
            return explicit_tag
        logger.warning(f"ignoring empty release tag; resolving {org}/{repo}")

    logger.info(f"fetching the latest release tag for {org}/{repo}")

    async def _fetch_tagged_release() -> ReleaseInfo:
        info = await client.get_latest_release(org, repo)
        if not info.tag_name:
            raise DownloadError(
                "release_info.tag_name is None",
                url=f"{org}/{repo}",
                is_retryable=True,
            )
        return info

    try:
        release_info = await retry_with_backoff(
            _fetch_tagged_release,
            max_attempts=max_attempts,
            base_delay=base_delay,
            description=f"fetch_latest_release {org}/{repo}",
            is_retryable=_retry_release_errors,
        )
    except RetriesExhaustedError as e:
        logger.warning(
            f"release tag for {org}/{repo} not found after {e.attempts} attempts "
            f"-- defaults to {pinned_default}"
        )
        return pinned_default

    if release_info.prerelease:
        logger.warning(
            f"latest release '{release_info.tag_name}' is prerelease, "
            f"falling back to default tag name '{pinned_default}'"
        )
        return pinned_default

    logger.info(f"resolved latest release tag {release_info.tag_name}")
    return release_info.tag_name or pinned_default
