"""
Index Cache for the sysimage Download Subsystem

This module provides the time-to-live cache over the two remote JSON
resources of a release server: the channel index and the per-device index.
"""

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

import requests

from sysimage.constants import (
    CHANNELS_CACHE_KEY,
    CHANNELS_INDEX_FILE,
    DEFAULT_CACHE_TIME,
    DEVICE_INDEX_FILE,
    INDEX_REQUEST_TIMEOUT,
)
from sysimage.exceptions import NetworkError
from sysimage.log_utils import logger
from sysimage.utils import build_session

from .interfaces import CacheEntry, ChannelIndex, DeviceIndex, parse_channel_index


class IndexCache:
    """
    Caches release index documents in memory for a fixed time-to-live.

    Each index is stored as an immutable CacheEntry under its own key and is
    replaced wholesale after a successful refresh. A failed refresh never
    touches the stored entry. Concurrent callers racing on an expired entry
    may both fetch; the last write wins.
    """

    def __init__(
        self,
        host: str,
        cache_time: int = DEFAULT_CACHE_TIME,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], float]] = None,
        serve_stale: bool = False,
    ):
        """
        Create an IndexCache for a release server.

        Parameters:
            host (str): Validated host URL ending with "/".
            cache_time (int): Time-to-live of every entry in seconds.
            session (Optional[requests.Session]): HTTP session to use; a retrying session is built if omitted.
            clock (Optional[Callable[[], float]]): Source of epoch seconds; defaults to time.time.
            serve_stale (bool): When True, a failed refresh returns the expired entry (if any) instead of raising.
        """
        self.host = host
        self.cache_time = cache_time
        self.session = session or build_session()
        self.clock = clock or time.time
        self.serve_stale = serve_stale
        self._entries: Dict[Hashable, CacheEntry[Any]] = {}

    def get_channels_index(self) -> ChannelIndex:
        """
        Return the channel index, fetching `channels.json` when the cached copy is missing or expired.

        Raises:
            NetworkError: If the index cannot be fetched or decoded.
        """
        return self._get(
            CHANNELS_CACHE_KEY,
            f"{self.host}{CHANNELS_INDEX_FILE}",
            parse_channel_index,
        )

    def get_device_index(self, device: str, channel: str) -> DeviceIndex:
        """
        Return the index of `device` on `channel`, fetching it when the cached copy is missing or expired.

        Raises:
            NetworkError: If the index cannot be fetched or decoded.
        """
        return self._get(
            cache_key_for(device, channel),
            f"{self.host}{channel}/{device}/{DEVICE_INDEX_FILE}",
            DeviceIndex.from_json,
        )

    def get_entry(self, key: Hashable) -> Optional[CacheEntry[Any]]:
        """Return the stored entry for `key`, fresh or not."""
        return self._entries.get(key)

    def clear(self) -> None:
        """Drop every cached entry."""
        self._entries = {}

    def _get(self, key: Hashable, url: str, parse: Callable[[Any], Any]) -> Any:
        entry = self._entries.get(key)
        if entry is not None and entry.is_valid(self.clock()):
            logger.debug(f"Using cached index for {url}")
            return entry.data

        logger.debug(f"Index cache miss for {url}; fetching")
        try:
            data = self._fetch(url, parse)
        except NetworkError as e:
            if self.serve_stale and entry is not None:
                logger.warning(f"Serving stale index for {url}: {e}")
                return entry.data
            raise

        self._entries[key] = CacheEntry(data, self.clock() + self.cache_time)
        return data

    def _fetch(self, url: str, parse: Callable[[Any], Any]) -> Any:
        try:
            response = self.session.get(url, timeout=INDEX_REQUEST_TIMEOUT)
        except requests.RequestException as e:
            logger.error(f"Could not fetch {url}: {e}")
            raise NetworkError(
                f"Could not fetch {url}", url=url, details=str(e)
            ) from e

        status_code = response.status_code
        if not 200 <= status_code < 300:
            logger.error(f"Index request for {url} returned HTTP {status_code}")
            raise NetworkError(
                f"Index request failed with HTTP {status_code}",
                url=url,
                status_code=status_code,
            )

        try:
            return parse(response.json())
        except ValueError as e:
            logger.error(f"Invalid index document at {url}: {e}")
            raise NetworkError(
                f"Invalid index document at {url}",
                url=url,
                status_code=status_code,
                details=str(e),
            ) from e


def cache_key_for(device: str, channel: str) -> Tuple[str, str]:
    """Key under which the index of `device` on `channel` is stored."""
    return (device, channel)
