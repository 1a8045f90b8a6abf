"""
Custom exceptions for avalanche-installer.

This module defines domain-specific exceptions that separate fatal problems
(unknown platforms, broken archives, unexpected archive layouts) from transient
ones that the retry loops are allowed to absorb.
"""

from typing import Optional


class InstallerError(Exception):
    """
    Base exception for all installer errors.

    All custom exceptions in the installer inherit from this class
    to allow for easy catching of all application-specific errors.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(InstallerError):
    """Exception raised when the configuration file cannot be read or parsed."""

    pass


# =============================================================================
# Platform Errors
# =============================================================================


class UnknownPlatformError(InstallerError):
    """
    Exception raised when an architecture/OS combination has no archive-naming rule.

    This includes:
    - Host architectures other than amd64/arm64
    - Hosts that are neither POSIX nor Windows
    - Combinations a product does not publish (e.g. subnet-evm on Windows)
    """

    def __init__(
        self,
        message: str,
        arch: str | None = None,
        os_name: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.arch = arch
        self.os_name = os_name


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(InstallerError):
    """
    Exception raised for failures talking to the release API or downloading an archive.

    Attributes:
        url: The URL that was being fetched when the error occurred.
        status_code: The HTTP status code, when the server answered.
        is_retryable: Whether the error could be retried.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        is_retryable: bool = False,
        details: str | None = None,
    ) -> None:
        """
        Initialize the download exception.

        Args:
            message: The primary error message.
            url: The URL that was being fetched.
            status_code: The HTTP status code.
            is_retryable: Whether this error could be retried.
            details: Optional additional context.
        """
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code
        self.is_retryable = is_retryable


class RetriesExhaustedError(InstallerError):
    """
    Exception raised when a retried operation never succeeded.

    Attributes:
        attempts: Number of attempts that were made.
        last_error: The error raised by the final attempt.
    """

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        last_error: Optional[BaseException] = None,
    ) -> None:
        details = str(last_error) if last_error is not None else None
        super().__init__(message, details)
        self.attempts = attempts
        self.last_error = last_error


# =============================================================================
# Object Store Errors
# =============================================================================


class ObjectStoreError(InstallerError):
    """
    Exception raised by object-store operations.

    Attributes:
        bucket: The bucket the operation targeted.
        key: The object key, when the operation addressed a single object.
        is_retryable: Whether the store classified the failure as transient.
    """

    def __init__(
        self,
        message: str,
        bucket: str | None = None,
        key: str | None = None,
        is_retryable: bool = False,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.bucket = bucket
        self.key = key
        self.is_retryable = is_retryable


# =============================================================================
# Archive Errors
# =============================================================================


class UnpackError(InstallerError):
    """Exception raised when an archive cannot be decoded with its declared format."""

    def __init__(
        self,
        message: str,
        archive_path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.archive_path = archive_path


# =============================================================================
# File System Errors
# =============================================================================


class FileSystemError(InstallerError):
    """
    Exception raised for file system-related errors.

    Attributes:
        path: The file path that caused the error.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


class LayoutMismatchError(FileSystemError):
    """Exception raised when the expected binary is missing from an unpacked archive."""

    pass
