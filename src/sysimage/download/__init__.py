"""
sysimage Download Subsystem

This package resolves, plans, fetches and stages system-image releases.

Core Components:
- interfaces: Data model and collaborator interfaces
- cache: Time-to-live cache over the release indices
- version: Latest full image selection
- planner: Artifact list expansion
- orchestrator: Concurrent, checksum-gated download with progress events
- base: Default HTTP downloader
- commands: Recovery install script generation
- files: Command file writing and device push manifests
"""

from .base import HttpDownloader
from .cache import IndexCache
from .commands import build_install_commands
from .files import FileStager
from .interfaces import (
    ActivityEvent,
    Artifact,
    ArtifactDoneEvent,
    CacheEntry,
    ChannelInfo,
    Checksum,
    DeviceIndex,
    DownloadCompleteEvent,
    Downloader,
    FileDescriptor,
    Image,
    InstallCommandResult,
    InstallCommandScript,
    ProgressEvent,
    PushEntry,
)
from .orchestrator import DownloadOrchestrator, ProgressTracker
from .planner import ArtifactPlanner
from .version import VersionResolver, select_latest_full_image

__all__ = [
    # Data model
    "ActivityEvent",
    "Artifact",
    "ArtifactDoneEvent",
    "CacheEntry",
    "ChannelInfo",
    "Checksum",
    "DeviceIndex",
    "DownloadCompleteEvent",
    "FileDescriptor",
    "Image",
    "InstallCommandResult",
    "InstallCommandScript",
    "ProgressEvent",
    "PushEntry",
    # Collaborators
    "Downloader",
    "HttpDownloader",
    # Engine
    "IndexCache",
    "VersionResolver",
    "select_latest_full_image",
    "ArtifactPlanner",
    "DownloadOrchestrator",
    "ProgressTracker",
    "build_install_commands",
    "FileStager",
]
