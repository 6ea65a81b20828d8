"""
System image client.

Wires the index cache, version resolver, artifact planner, download
orchestrator, command builder and file stager into the single workflow that
turns a device and channel into a push manifest.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from sysimage.config import resolve_config
from sysimage.constants import (
    ACTIVITY_RESOLVING,
    ACTIVITY_STAGING,
    CONFIG_KEY_CACHE_TIME,
    CONFIG_KEY_DOWNLOAD_DIR,
    CONFIG_KEY_HOST,
    CONFIG_KEY_MAX_CONCURRENT,
    CONFIG_KEY_SERVE_STALE,
)
from sysimage.download.base import HttpDownloader
from sysimage.download.cache import IndexCache
from sysimage.download.commands import build_install_commands
from sysimage.download.files import FileStager
from sysimage.download.interfaces import (
    ChannelIndex,
    ChecksumFunc,
    DeviceIndex,
    Downloader,
    Image,
    PushEntry,
)
from sysimage.download.orchestrator import (
    ActivityCallback,
    ArtifactDoneCallback,
    DownloadOrchestrator,
    ProgressCallback,
)
from sysimage.download.planner import ArtifactPlanner
from sysimage.download.version import VersionResolver
from sysimage.log_utils import logger


class SystemImageClient:
    """
    Client for a system-image release server.

    One client serves one download workflow at a time; the index cache is
    owned by the client and reused across calls.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        session: Optional[requests.Session] = None,
        downloader: Optional[Downloader] = None,
        checksum_func: Optional[ChecksumFunc] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Create a SystemImageClient.

        Parameters:
            config (Optional[Dict[str, Any]]): Configuration with keys HOST, CACHE_TIME, DOWNLOAD_DIR, ALLOW_INSECURE, MAX_CONCURRENT_DOWNLOADS and SERVE_STALE_INDEX; missing keys take defaults.
            session (Optional[requests.Session]): Session used for index requests.
            downloader (Optional[Downloader]): Artifact transport; an HttpDownloader is created if omitted.
            checksum_func (Optional[ChecksumFunc]): Digest function used to verify artifacts.
            clock (Optional[Callable[[], float]]): Epoch-seconds clock used for cache expiry.

        Raises:
            ConfigurationError: If the host is invalid or insecure, or an option is out of range.
        """
        self.config = resolve_config(config)
        self.host: str = self.config[CONFIG_KEY_HOST]
        self.path: str = self.config[CONFIG_KEY_DOWNLOAD_DIR]
        self.cache_time: int = self.config[CONFIG_KEY_CACHE_TIME]

        self._owns_session = session is None
        self._owns_downloader = downloader is None
        self.index_cache = IndexCache(
            self.host,
            self.cache_time,
            session=session,
            clock=clock,
            serve_stale=self.config[CONFIG_KEY_SERVE_STALE],
        )
        self.version_resolver = VersionResolver(self.index_cache)
        self.planner = ArtifactPlanner(self.host, self.path)
        self.downloader = downloader or HttpDownloader(
            max_concurrent=self.config[CONFIG_KEY_MAX_CONCURRENT]
        )
        self.orchestrator = DownloadOrchestrator(self.downloader, checksum_func)
        self.stager = FileStager()

    def get_channels_index(self) -> ChannelIndex:
        return self.index_cache.get_channels_index()

    def get_device_index(self, device: str, channel: str) -> DeviceIndex:
        return self.index_cache.get_device_index(device, channel)

    def get_latest_version(self, device: str, channel: str) -> Image:
        return self.version_resolver.get_latest_version(device, channel)

    def get_channels(self) -> List[str]:
        """
        List channels that are neither hidden nor redirects, in index order.

        Raises:
            NetworkError: If the channel index cannot be fetched.
        """
        return [
            name
            for name, info in self.get_channels_index().items()
            if info.is_visible
        ]

    def get_device_channels(self, device: str) -> List[str]:
        """
        List visible channels that publish images for `device`.

        Raises:
            NetworkError: If the channel index cannot be fetched.
        """
        return [
            name
            for name, info in self.get_channels_index().items()
            if info.is_visible and device in info.devices
        ]

    def get_release_date(self, device: str, channel: str) -> Optional[str]:
        """Return the `generated_at` timestamp of the device index."""
        return self.get_device_index(device, channel).generated_at

    def download_latest_version(
        self,
        device: str,
        channel: str,
        *,
        wipe: bool = False,
        installer_check: bool = False,
        enable: Optional[Sequence[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_artifact_done: Optional[ArtifactDoneCallback] = None,
        on_activity: Optional[ActivityCallback] = None,
    ) -> List[PushEntry]:
        """
        Download the latest full image for a device and stage it for pushing.

        Resolves the latest full image, fetches its files, signatures and the
        keyrings, writes the install command file and returns the push manifest.

        Parameters:
            device (str): Device codename.
            channel (str): Release channel name.
            wipe (bool): Add `format data` to the install script.
            installer_check (bool): Add `installer_check` to the install script.
            enable (Optional[Sequence[str]]): Features to enable after installation.
            on_progress (Optional[ProgressCallback]): Receives `(fraction, rate_mbps)`.
            on_artifact_done (Optional[ArtifactDoneCallback]): Receives `(completed, total)`.
            on_activity (Optional[ActivityCallback]): Receives coarse state names.

        Returns:
            List[PushEntry]: Every artifact and the command file mapped to device paths.

        Raises:
            NetworkError: If an index cannot be fetched.
            NoImagesError: If no full image is published.
            DownloadError: If an artifact cannot be downloaded or verified.
            FileSystemError: If the command file cannot be written.
        """
        if on_activity:
            on_activity(ACTIVITY_RESOLVING)
        latest = self.get_latest_version(device, channel)
        logger.info(
            f"Downloading version {latest.version} for {device} on channel {channel}"
        )

        artifacts = self.planner.plan_artifacts(latest)
        downloaded = self.orchestrator.download(
            artifacts,
            on_progress=on_progress,
            on_artifact_done=on_artifact_done,
            on_activity=on_activity,
        )

        if on_activity:
            on_activity(ACTIVITY_STAGING)
        script = build_install_commands(
            latest.files, installer_check, wipe, enable
        ).unwrap()
        command_file = self.stager.write_command_file(script, self.path)
        manifest = self.stager.build_push_manifest(downloaded, command_file)
        logger.info(f"Version {latest.version} is ready to push ({len(manifest)} files)")
        return manifest

    def close(self) -> None:
        """Release the HTTP resources the client created; injected ones are left open."""
        if self._owns_downloader:
            self.downloader.close()
        if self._owns_session:
            self.index_cache.session.close()

    def __enter__(self) -> "SystemImageClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
