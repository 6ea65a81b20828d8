"""
Artifact Planning for the sysimage Download Subsystem

Expands a resolved image into the ordered list of artifacts that must exist
locally before the image can be installed. The order produced here is the
order the rest of the pipeline relies on.
"""

import posixpath
from pathlib import Path
from typing import List

from sysimage.constants import (
    CHECKSUM_ALGORITHM,
    GPG_DIR_NAME,
    KEYRING_FILES,
    POOL_DIR_NAME,
)

from .interfaces import Artifact, Checksum, Image, Pathish


def _basename(location: str) -> str:
    return posixpath.basename(location)


def pool_path(root: Pathish, location: str) -> str:
    """Local path of an image file or signature: `{root}/pool/{basename}`."""
    return str(Path(root) / POOL_DIR_NAME / _basename(location))


def keyring_path(root: Pathish, name: str) -> str:
    """Local path of a keyring file: `{root}/gpg/{name}`."""
    return str(Path(root) / GPG_DIR_NAME / name)


class ArtifactPlanner:
    """
    Builds artifact lists for a release host and local download root.

    Local paths depend only on the root, the artifact kind and the file's
    basename, so planning again after a failed run yields the same paths.
    """

    def __init__(self, host: str, root: Pathish):
        self.host = host
        self.root = root

    def plan_artifacts(self, image: Image) -> List[Artifact]:
        """
        Expand an image into its content, signature and keyring artifacts.

        Every file descriptor yields its content artifact (checksummed with
        sha256 when the index publishes a checksum) followed by its signature
        artifact. The four keyring artifacts are appended last.

        Parameters:
            image (Image): The resolved image.

        Returns:
            List[Artifact]: `2 * len(image.files) + 4` artifacts in download order.
        """
        artifacts: List[Artifact] = []
        for descriptor in image.files:
            checksum = (
                Checksum(CHECKSUM_ALGORITHM, descriptor.checksum)
                if descriptor.checksum
                else None
            )
            artifacts.append(
                Artifact(
                    url=f"{self.host}{descriptor.path}",
                    local_path=pool_path(self.root, descriptor.path),
                    checksum=checksum,
                )
            )
            artifacts.append(
                Artifact(
                    url=f"{self.host}{descriptor.signature}",
                    local_path=pool_path(self.root, descriptor.signature),
                )
            )
        artifacts.extend(self.keyring_artifacts())
        return artifacts

    def keyring_artifacts(self) -> List[Artifact]:
        """Return the fixed keyring artifacts every installation needs."""
        return [
            Artifact(
                url=f"{self.host}{GPG_DIR_NAME}/{name}",
                local_path=keyring_path(self.root, name),
            )
            for name in KEYRING_FILES
        ]
