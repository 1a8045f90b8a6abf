"""
Object-store synchronisation of a node binary and its plugins.

Artifacts staged once into a bucket (see upload_binary_and_plugins) can be
replicated to many machines with sync_binary_and_plugins. Transfers are
idempotent: existing local files are left alone unless overwrite is set.
"""

from pathlib import Path, PurePosixPath
from typing import List, Optional

from avalanche_installer.constants import (
    DEFAULT_STORE_MAX_ATTEMPTS,
    DEFAULT_STORE_RETRY_DELAY,
    PLUGIN_PLACEHOLDER_NAMES,
    STORE_TMP_PATH_LENGTH,
)
from avalanche_installer.download.files import place_file, random_tmp_path
from avalanche_installer.download.interfaces import Pathish
from avalanche_installer.exceptions import FileSystemError
from avalanche_installer.log_utils import logger
from avalanche_installer.retry import retry_with_backoff

from .interfaces import ObjectStore, StoreObject, SyncReport, SyncTarget


def extract_filename(key: str) -> str:
    """Return "hello" from "a/b/c/hello.zstd"."""
    return PurePosixPath(key).stem


def is_plugin_placeholder(key: str) -> bool:
    """Whether a listed key stands for a directory entry rather than a plugin file."""
    if key.endswith("/"):
        return True
    name = extract_filename(key)
    return not name or name in PLUGIN_PLACEHOLDER_NAMES


async def download_object(
    store: ObjectStore,
    target: SyncTarget,
    *,
    max_attempts: int = DEFAULT_STORE_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_STORE_RETRY_DELAY,
) -> bool:
    """
    Transfer one object to its local path unless it is already there.

    Returns:
        bool: `True` if the object was downloaded, `False` if it was skipped.

    Raises:
        ObjectStoreError: On a non-retryable store error.
        RetriesExhaustedError: If every attempt failed with a retryable error.
        FileSystemError: If the downloaded file cannot be placed.
    """
    if not target.needs_download():
        logger.info(f"{target.local_path} already exists -- skipping...")
        return False
    if target.local_path.exists():
        logger.info(f"{target.local_path} already exists but overwriting...")

    tmp_path = random_tmp_path(STORE_TMP_PATH_LENGTH)
    logger.info(f"downloading s3://{target.bucket}/{target.key} to {target.local_path}")
    try:
        await retry_with_backoff(
            lambda: store.get_object(target.bucket, target.key, tmp_path),
            max_attempts=max_attempts,
            base_delay=base_delay,
            description=f"get_object for {target.key}",
        )
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info(f"successfully downloaded to {tmp_path}")
    place_file(tmp_path, target.local_path)
    return True


async def list_plugin_objects(
    store: ObjectStore,
    bucket: str,
    prefix: str,
    *,
    max_attempts: int = DEFAULT_STORE_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_STORE_RETRY_DELAY,
) -> List[StoreObject]:
    objects = await retry_with_backoff(
        lambda: store.list_objects(bucket, prefix),
        max_attempts=max_attempts,
        base_delay=base_delay,
        description=f"list_objects for {prefix}",
    )
    logger.info(f"listed {len(objects)} plugin objects in {prefix}")
    return objects


async def sync_binary_and_plugins(
    store: ObjectStore,
    overwrite: bool,
    bucket: str,
    binary_key: str,
    target_binary_path: Pathish,
    plugin_key_prefix: str,
    target_plugin_dir: Pathish,
    *,
    max_attempts: int = DEFAULT_STORE_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_STORE_RETRY_DELAY,
) -> SyncReport:
    """
    Ensure a binary and every plugin under a key prefix exist locally.

    The binary and each plugin are transferred independently; a transfer happens
    when the local file is missing or `overwrite` is set. Plugin names come from the
    last key segment with its extension stripped ("plugins/evm.zst" -> "evm"), and
    the ``plugin`` container placeholder keys are ignored.

    Any non-retryable error or exhausted retry budget aborts the whole call; plugins
    placed before the failure are kept.

    Returns:
        SyncReport: Local paths downloaded and skipped.
    """
    logger.info(
        f"downloading binary and plugins in bucket {bucket} (overwrite {overwrite})"
    )
    report = SyncReport()

    binary_target = SyncTarget(bucket, binary_key, Path(target_binary_path), overwrite)
    if await download_object(
        store, binary_target, max_attempts=max_attempts, base_delay=base_delay
    ):
        report.downloaded.append(binary_target.local_path)
    else:
        report.skipped.append(binary_target.local_path)

    objects = await list_plugin_objects(
        store,
        bucket,
        plugin_key_prefix,
        max_attempts=max_attempts,
        base_delay=base_delay,
    )

    plugin_dir = Path(target_plugin_dir)
    if not plugin_dir.exists():
        logger.info(f"creating '{plugin_dir}' for plugin")
        try:
            plugin_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(
                f"failed to create plugin dir {plugin_dir}",
                path=str(plugin_dir),
                details=str(e),
            ) from e
    else:
        logger.info(f"plugin-dir {plugin_dir} already exists -- skipping create")

    for obj in objects:
        if is_plugin_placeholder(obj.key):
            logger.info(f"object '{obj.key}' is the plugin directory, so skip")
            continue

        target = SyncTarget(
            bucket, obj.key, plugin_dir / extract_filename(obj.key), overwrite
        )
        if await download_object(
            store, target, max_attempts=max_attempts, base_delay=base_delay
        ):
            report.downloaded.append(target.local_path)
        else:
            report.skipped.append(target.local_path)

    return report


async def upload_binary_and_plugins(
    store: ObjectStore,
    bucket: str,
    binary_path: Pathish,
    binary_key: str,
    plugins_dir: Optional[Pathish] = None,
    plugin_key_prefix: Optional[str] = None,
    *,
    max_attempts: int = DEFAULT_STORE_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_STORE_RETRY_DELAY,
) -> List[str]:
    """
    Seed a bucket with a binary and the regular files of a plugins directory.

    Plugins are stored as ``<plugin_key_prefix>/<file name>``.

    Returns:
        List[str]: The keys written.
    """
    binary = Path(binary_path)
    if not binary.is_file():
        raise FileSystemError(f"binary {binary} does not exist", path=str(binary))

    uploads = [(binary, binary_key)]
    if plugins_dir is not None and plugin_key_prefix is not None:
        prefix = plugin_key_prefix.rstrip("/")
        for plugin in sorted(Path(plugins_dir).iterdir()):
            if plugin.is_file():
                uploads.append((plugin, f"{prefix}/{plugin.name}"))

    written: List[str] = []
    for local_path, key in uploads:
        await retry_with_backoff(
            lambda local_path=local_path, key=key: store.put_object(
                local_path, bucket, key
            ),
            max_attempts=max_attempts,
            base_delay=base_delay,
            description=f"put_object for {key}",
        )
        written.append(key)

    logger.info(f"uploaded {len(written)} objects to bucket {bucket}")
    return written
