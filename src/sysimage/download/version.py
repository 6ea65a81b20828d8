"""
Version Resolution for the sysimage Download Subsystem

Selects the image to install for a device/channel from its device index.
"""

from typing import Optional

from sysimage.constants import IMAGE_TYPE_FULL
from sysimage.exceptions import NoImagesError
from sysimage.log_utils import logger

from .cache import IndexCache
from .interfaces import DeviceIndex, Image


def select_latest_full_image(index: DeviceIndex) -> Optional[Image]:
    """
    Pick the newest full image from a device index.

    Images are scanned in index order and an image only replaces the current
    best when it is a full image with a strictly greater version, so the first
    of several equal versions wins. Delta images are never selected.

    Returns:
        The selected image, or None if the index has no full image.
    """
    best: Optional[Image] = None
    for image in index.images or ():
        if image.type != IMAGE_TYPE_FULL:
            continue
        if best is None or image.version > best.version:
            best = image
    return best


class VersionResolver:
    """Resolves the latest installable image using an IndexCache."""

    def __init__(self, index_cache: IndexCache):
        self.index_cache = index_cache

    def get_latest_version(self, device: str, channel: str) -> Image:
        """
        Return the latest full image published for `device` on `channel`.

        Raises:
            NetworkError: If the device index cannot be fetched.
            NoImagesError: If the index has no images, or none of them is a full image.
        """
        index = self.index_cache.get_device_index(device, channel)
        if not index.images:
            raise NoImagesError(device, channel, index, details="index has no images")

        latest = select_latest_full_image(index)
        if latest is None:
            raise NoImagesError(
                device, channel, index, details="index has no full images"
            )

        logger.debug(
            f"Latest full image for {device} on {channel} is version {latest.version}"
        )
        return latest
