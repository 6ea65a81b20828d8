"""
Core Interfaces for the sysimage Download Subsystem

This module defines the data structures shared by the release engine (index
records, artifacts, push entries and progress events) and the abstract
collaborators the engine delegates to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

Pathish = Union[str, Path]

T = TypeVar("T")

# (path, algorithm) -> hex digest, or None if the file cannot be read
ChecksumFunc = Callable[[str, str], Optional[str]]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value together with the moment it stops being fresh."""

    data: T
    """The cached value"""

    expires_at: float
    """Epoch seconds after which the entry must be refreshed"""

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class ChannelInfo:
    """Visibility and device membership of one release channel."""

    hidden: bool = False
    redirect: bool = False
    devices: frozenset = frozenset()

    @property
    def is_visible(self) -> bool:
        return not (self.hidden or self.redirect)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "ChannelInfo":
        """
        Build a ChannelInfo from one entry of `channels.json`.

        `devices` may be an object keyed by device codename or a list of codenames.

        Raises:
            ValueError: If `devices` is neither.
        """
        devices = data.get("devices") or {}
        if isinstance(devices, list):
            if not all(isinstance(name, str) for name in devices):
                raise ValueError("channel 'devices' list must contain device names")
        elif not isinstance(devices, dict):
            raise ValueError("channel 'devices' must be a JSON object or list")
        return cls(
            hidden=bool(data.get("hidden", False)),
            redirect=bool(data.get("redirect", False)),
            devices=frozenset(devices),
        )


ChannelIndex = Mapping[str, ChannelInfo]


def parse_channel_index(data: Any) -> ChannelIndex:
    """
    Build a read-only channel index from the decoded `channels.json` payload.

    Parameters:
        data (Any): Decoded JSON; must be an object mapping channel names to channel objects.

    Returns:
        ChannelIndex: Read-only mapping of channel name to ChannelInfo, in document order.

    Raises:
        ValueError: If the payload is not an object or a channel entry is not an object.
    """
    if not isinstance(data, dict):
        raise ValueError("channels index must be a JSON object")
    channels: Dict[str, ChannelInfo] = {}
    for name, entry in data.items():
        if not isinstance(entry, dict):
            raise ValueError(f"channel {name!r} must be a JSON object")
        channels[name] = ChannelInfo.from_json(entry)
    return MappingProxyType(channels)


@dataclass(frozen=True)
class Checksum:
    """An expected digest and the hashlib algorithm that produces it."""

    algorithm: str
    sum: str


@dataclass(frozen=True)
class FileDescriptor:
    """One payload file of an image as listed in a device index."""

    path: str
    """Host-relative location of the file"""

    signature: str
    """Host-relative location of the detached signature"""

    checksum: Optional[str] = None
    """SHA-256 hex digest of the file, when published"""

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "FileDescriptor":
        return cls(
            path=str(data["path"]),
            signature=str(data["signature"]),
            checksum=data.get("checksum") or None,
        )


@dataclass(frozen=True)
class Image:
    """A published release image."""

    version: int
    type: str
    files: Tuple[FileDescriptor, ...] = ()

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Image":
        return cls(
            version=int(data["version"]),
            type=str(data.get("type", "")),
            files=tuple(FileDescriptor.from_json(f) for f in data.get("files") or []),
        )


@dataclass(frozen=True)
class DeviceIndex:
    """Per-device, per-channel release metadata."""

    generated_at: Optional[str] = None
    """Generation timestamp from the index's `global` block"""

    images: Optional[Tuple[Image, ...]] = None
    """Images in index order; None when the index carries no image list"""

    raw: Any = field(default=None, compare=False, repr=False)
    """The decoded JSON document, kept for diagnostics"""

    @classmethod
    def from_json(cls, data: Any) -> "DeviceIndex":
        """
        Build a DeviceIndex from the decoded `index.json` payload.

        Raises:
            ValueError: If the payload or one of its images is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError("device index must be a JSON object")
        global_block = data.get("global") or {}
        if not isinstance(global_block, dict):
            raise ValueError("device index 'global' must be a JSON object")
        raw_images = data.get("images")
        images = None
        if raw_images is not None:
            if not isinstance(raw_images, list):
                raise ValueError("device index 'images' must be a list")
            try:
                images = tuple(Image.from_json(img) for img in raw_images)
            except (KeyError, TypeError, AttributeError) as e:
                raise ValueError(f"malformed image entry: {e}") from e
        return cls(
            generated_at=global_block.get("generated_at"),
            images=images,
            raw=data,
        )


@dataclass(frozen=True)
class Artifact:
    """A single downloadable unit and where it lives on disk."""

    url: str
    local_path: str
    checksum: Optional[Checksum] = None


@dataclass(frozen=True)
class InstallCommandScript:
    """Ordered lines of a recovery install script."""

    lines: Tuple[str, ...]

    def to_text(self) -> str:
        return "\n".join(self.lines) + "\n"


@dataclass(frozen=True)
class InstallCommandResult:
    """
    Outcome of building an install script.

    Exactly one of `script` and `error` is set, so malformed input can be told
    apart from a valid script.
    """

    script: Optional[InstallCommandScript] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.script is not None

    def unwrap(self) -> InstallCommandScript:
        """
        Return the script or raise the recorded error.

        Raises:
            ValueError: If the result carries neither a script nor an error.
        """
        if self.error is not None:
            raise self.error
        if self.script is None:
            raise ValueError("install command result carries no script")
        return self.script


@dataclass(frozen=True)
class PushEntry:
    """A local file and the device directory or path it is pushed to."""

    src: str
    dest: str


# =============================================================================
# Download events
# =============================================================================


@dataclass(frozen=True)
class ActivityEvent:
    """Coarse-grained state change, e.g. "downloading" or "verifying"."""

    state: str


@dataclass(frozen=True)
class ProgressEvent:
    """Overall progress: fraction in [0, 1] and current rate in MB/s."""

    fraction: float
    rate_mbps: float


@dataclass(frozen=True)
class ArtifactDoneEvent:
    """An artifact is satisfied; `completed` of `total` are done."""

    completed: int
    total: int


@dataclass(frozen=True)
class DownloadCompleteEvent:
    """Terminal event carrying the materialized artifacts in input order."""

    artifacts: Tuple[Artifact, ...]


DownloadEvent = Union[
    ActivityEvent, ProgressEvent, ArtifactDoneEvent, DownloadCompleteEvent
]


# =============================================================================
# Collaborators
# =============================================================================


class Downloader(ABC):
    """
    Abstract transport that copies one remote artifact to a local path.

    Implementations may retry or resume as they see fit. `fetch` is called from
    worker threads, so implementations must be safe to call concurrently.
    """

    max_concurrent: int = 1
    """How many fetches the downloader accepts at the same time"""

    @abstractmethod
    def fetch(
        self,
        url: str,
        target_path: Pathish,
        on_size: Callable[[Optional[int]], None],
        on_chunk: Callable[[int], None],
    ) -> Path:
        """
        Download `url` to `target_path`.

        Parameters:
            url (str): Source URL.
            target_path (Pathish): Destination file; parent directories may not exist yet.
            on_size (Callable[[Optional[int]], None]): Called once with the expected size in bytes, or None if unknown, when response headers arrive.
            on_chunk (Callable[[int], None]): Called with the byte count of every chunk written.

        Returns:
            Path: The path the file was written to.
        """

    def close(self) -> None:
        """Release transport resources. The default does nothing."""
