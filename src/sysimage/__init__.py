from sysimage.client import SystemImageClient
from sysimage.exceptions import (
    ChecksumMismatchError,
    ConfigurationError,
    DownloadError,
    FileSystemError,
    InvalidInputError,
    NetworkError,
    NoImagesError,
    SysImageError,
)

__all__ = [
    "SystemImageClient",
    "SysImageError",
    "ConfigurationError",
    "NetworkError",
    "NoImagesError",
    "DownloadError",
    "ChecksumMismatchError",
    "FileSystemError",
    "InvalidInputError",
]
