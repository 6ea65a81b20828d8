"""
Custom exceptions for sysimage.

This module defines the error taxonomy of the release client. Configuration
errors are raised synchronously while a client is constructed; every other
error surfaces from the workflow call that hit it, and the caller decides
whether to run the whole workflow again.
"""

from typing import Any, Optional


class SysImageError(Exception):
    """
    Base exception for all sysimage errors.

    All custom exceptions in sysimage inherit from this class so callers can
    catch every application-specific error in one place.
    """

    def __init__(self, message: str, details: Optional[str] = None) -> None:
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


class ConfigurationError(SysImageError):
    """
    Exception raised when configuration is invalid.

    This includes:
    - Host URLs that do not look like URLs
    - Insecure (http) hosts without the insecure override
    - Unusable option values
    """

    pass


class ConfigFileError(ConfigurationError):
    """Exception raised when the configuration file cannot be read or parsed."""

    pass


# =============================================================================
# Index Errors
# =============================================================================


class NetworkError(SysImageError):
    """
    Exception raised when a release index cannot be fetched.

    Attributes:
        url: The index URL that was requested.
        status_code: HTTP status code of the response, if one was received.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code


class NoImagesError(SysImageError):
    """
    Exception raised when a device index has no installable image.

    Attributes:
        device: Codename of the device that was looked up.
        channel: Release channel that was looked up.
        index: The device index that was inspected, kept for diagnostics.
    """

    def __init__(
        self,
        device: str,
        channel: str,
        index: Any = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"No images found for device '{device}' on channel '{channel}'",
            details,
        )
        self.device = device
        self.channel = channel
        self.index = index


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(SysImageError):
    """
    Exception raised when an artifact could not be materialized locally.

    Attributes:
        url: The artifact URL that failed.
        cause: The underlying exception, when the failure wraps one.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.cause = cause


class ChecksumMismatchError(DownloadError):
    """
    Exception raised when a downloaded file does not match its published checksum.

    Attributes:
        path: Local path of the offending file.
        expected: The checksum published in the device index.
        actual: The checksum computed from the file on disk.
    """

    def __init__(
        self,
        path: str,
        expected: str,
        actual: Optional[str],
        url: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Checksum mismatch for {path}",
            url=url,
            details=f"expected {expected}, got {actual}",
        )
        self.path = path
        self.expected = expected
        self.actual = actual


# =============================================================================
# File System Errors
# =============================================================================


class FileSystemError(SysImageError):
    """
    Exception raised when a directory or file cannot be created or written.

    Attributes:
        path: The path that caused the error.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


# =============================================================================
# Validation Errors
# =============================================================================


class InvalidInputError(SysImageError):
    """
    Exception describing malformed arguments handed to a pure builder.

    Attributes:
        field: Name of the argument that failed validation.
        value: The rejected value.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field
        self.value = value
