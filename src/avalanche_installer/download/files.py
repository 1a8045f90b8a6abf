"""
File operations for the download subsystem.

This module provides scratch-path generation, zip and gzip-tar unpacking with
path-traversal protection, best-effort cleanup, and permission handling.
"""

import os
import secrets
import shutil
import string
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import List, Optional

from avalanche_installer.constants import EXECUTABLE_PERMISSIONS, TMP_PATH_LENGTH
from avalanche_installer.exceptions import FileSystemError, UnpackError
from avalanche_installer.log_utils import logger

from .interfaces import DecoderKind, Pathish

_TMP_ALPHABET = string.ascii_lowercase + string.digits


def random_tmp_path(
    length: int = TMP_PATH_LENGTH, suffix: Optional[str] = None
) -> Path:
    """
    Return a fresh, not-yet-existing path in the system temp directory.

    Parameters:
        length (int): Number of random characters in the name.
        suffix (Optional[str]): Optional suffix such as ".tar.gz".

    Returns:
        Path: A random path; nothing is created on disk.
    """
    name = "".join(secrets.choice(_TMP_ALPHABET) for _ in range(length))
    return Path(tempfile.gettempdir()) / f"{name}{suffix or ''}"


def _is_safe_archive_member(member_name: str) -> bool:
    """
    Determine whether an archive member name is safe to extract.

    Returns:
        `True` if the member name contains no absolute paths, parent-directory references, or null bytes.
    """
    if not member_name or member_name.startswith(("/", "\\")):
        return False
    if "\x00" in member_name:
        return False
    normalized = os.path.normpath(member_name)
    if os.path.isabs(normalized):
        return False
    if normalized == ".." or normalized.startswith(f"..{os.sep}"):
        return False
    if os.altsep and normalized.startswith(f"..{os.altsep}"):
        return False
    return True


def safe_extract_path(extract_dir: Pathish, member_name: str) -> Path:
    """
    Resolve the extraction path of an archive member, refusing paths outside `extract_dir`.

    Raises:
        ValueError: If the resolved path is outside extract_dir.
    """
    real_extract_dir = os.path.realpath(extract_dir)
    normalized_path = os.path.realpath(os.path.join(real_extract_dir, member_name))
    if os.path.commonpath([real_extract_dir, normalized_path]) != real_extract_dir:
        raise ValueError(
            f"Unsafe extraction path '{member_name}' is outside base '{extract_dir}'"
        )
    return Path(normalized_path)


def _unpack_zip(archive_path: Path, target_dir: Path) -> List[Path]:
    extracted: List[Path] = []
    with zipfile.ZipFile(archive_path, "r") as zip_ref:
        for info in zip_ref.infolist():
            if not _is_safe_archive_member(info.filename):
                logger.warning(
                    "Skipping unsafe archive member %s (possible traversal)",
                    info.filename,
                )
                continue
            destination = safe_extract_path(target_dir, info.filename)
            if info.is_dir():
                destination.mkdir(parents=True, exist_ok=True)
                continue

            destination.parent.mkdir(parents=True, exist_ok=True)
            with zip_ref.open(info) as source, open(destination, "wb") as target:
                shutil.copyfileobj(source, target)

            # zip keeps unix mode bits in the high word of external_attr
            mode = (info.external_attr >> 16) & 0o777
            if mode:
                os.chmod(destination, mode)
            extracted.append(destination)
    return extracted


def _unpack_tar_gz(archive_path: Path, target_dir: Path) -> List[Path]:
    extracted: List[Path] = []
    with tarfile.open(archive_path, "r:gz") as tar_ref:
        for member in tar_ref.getmembers():
            if not _is_safe_archive_member(member.name):
                logger.warning(
                    "Skipping unsafe archive member %s (possible traversal)",
                    member.name,
                )
                continue
            destination = safe_extract_path(target_dir, member.name)
            if member.isdir():
                destination.mkdir(parents=True, exist_ok=True)
                continue
            if not member.isfile():
                logger.debug(f"Skipping non-regular archive member {member.name}")
                continue

            source = tar_ref.extractfile(member)
            if source is None:
                continue
            destination.parent.mkdir(parents=True, exist_ok=True)
            with source, open(destination, "wb") as target:
                shutil.copyfileobj(source, target)
            os.chmod(destination, member.mode & 0o777)
            extracted.append(destination)
    return extracted


def unpack_archive(
    archive_path: Pathish, target_dir: Pathish, decoder: DecoderKind
) -> List[Path]:
    """
    Unpack an archive into `target_dir` with the given decoder.

    Parameters:
        archive_path (Pathish): The archive file.
        target_dir (Pathish): Destination directory; created if missing.
        decoder (DecoderKind): Archive format; it must match the file contents.

    Returns:
        List[Path]: Regular files written to disk.

    Raises:
        UnpackError: If the archive is corrupt or not in the declared format.
    """
    archive = Path(archive_path)
    target = Path(target_dir)
    logger.info(f"unpacking {archive} to {target}")

    try:
        target.mkdir(parents=True, exist_ok=True)
        if decoder is DecoderKind.ZIP:
            extracted = _unpack_zip(archive, target)
        else:
            extracted = _unpack_tar_gz(archive, target)
    except (zipfile.BadZipFile, tarfile.TarError, EOFError, OSError, ValueError) as e:
        raise UnpackError(
            f"failed to unpack {archive.name} as {decoder.value}",
            archive_path=str(archive),
            details=str(e),
        ) from e

    logger.debug(f"Extracted {len(extracted)} files from {archive}")
    return extracted


def remove_file_best_effort(file_path: Pathish) -> bool:
    """
    Remove a file, logging instead of raising when removal fails.

    Returns:
        bool: `True` if the file is gone afterwards, `False` otherwise.
    """
    path = Path(file_path)
    if not path.exists():
        logger.debug(f"no downloaded file to clean up at {path}")
        return True
    logger.info(f"cleaning up downloaded file {path}")
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        # the unpack step can keep the archive busy on some platforms
        logger.warning(
            f"failed to remove downloaded file {path} ({e}), skipping for now..."
        )
        return False
    logger.info(f"removed downloaded file {path}")
    return True


def make_executable(file_path: Pathish, mode: int = EXECUTABLE_PERMISSIONS) -> Path:
    """
    Set permission bits on a file (fully executable for everyone by default).

    Raises:
        FileSystemError: If the file cannot be opened or its mode cannot be changed.
    """
    path = Path(file_path)
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise FileSystemError(
            f"failed to set permissions on {path}", path=str(path), details=str(e)
        ) from e
    return path


def place_file(source: Pathish, target: Pathish) -> Path:
    """
    Copy `source` to `target`, delete `source`, and make `target` executable.

    Raises:
        FileSystemError: If any of the steps fails.
    """
    source_path = Path(source)
    target_path = Path(target)
    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source_path, target_path)
        source_path.unlink()
    except OSError as e:
        raise FileSystemError(
            f"failed to place {source_path} at {target_path}",
            path=str(target_path),
            details=str(e),
        ) from e
    return make_executable(target_path)
