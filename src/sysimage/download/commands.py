"""
Install Command Generation

Builds the line-oriented script the recovery installer executes to flash a
system image.
"""

import posixpath
from collections.abc import Mapping, Sequence
from typing import Any, List, Optional

from sysimage.constants import (
    CMD_ENABLE,
    CMD_FORMAT_DATA,
    CMD_FORMAT_SYSTEM,
    CMD_INSTALLER_CHECK,
    CMD_LOAD_KEYRING,
    CMD_MOUNT_SYSTEM,
    CMD_UNMOUNT_SYSTEM,
    CMD_UPDATE,
    IMAGE_MASTER_KEYRING,
    IMAGE_SIGNING_KEYRING,
    SIGNATURE_SUFFIX,
)
from sysimage.exceptions import InvalidInputError

from .interfaces import InstallCommandResult, InstallCommandScript

PREAMBLE = (
    CMD_FORMAT_SYSTEM,
    f"{CMD_LOAD_KEYRING} {IMAGE_MASTER_KEYRING} {IMAGE_MASTER_KEYRING}{SIGNATURE_SUFFIX}",
    f"{CMD_LOAD_KEYRING} {IMAGE_SIGNING_KEYRING} {IMAGE_SIGNING_KEYRING}{SIGNATURE_SUFFIX}",
    CMD_MOUNT_SYSTEM,
)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _field(entry: Any, name: str) -> Optional[str]:
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)


def build_install_commands(
    files: Any,
    installer_check: bool = False,
    wipe: bool = False,
    enable: Any = None,
) -> InstallCommandResult:
    """
    Build the recovery install script for a set of image files.

    The script always starts with the system format, keyring load and mount
    preamble. `format data` follows when `wipe` is True, then one `update`
    line per file entry that carries a signature, in input order, then one
    `enable` line per feature name when `enable` is a sequence, then
    `unmount system`, and finally `installer_check` when requested.

    Parameters:
        files: Sequence of FileDescriptor objects or mappings with `path` and `signature`.
        installer_check (bool): Append the installer check command.
        wipe (bool): Format the data partition.
        enable: Sequence of feature names to enable; anything else is ignored.

    Returns:
        InstallCommandResult: The script, or an InvalidInputError when `files` is not a sequence.
    """
    if not _is_sequence(files):
        return InstallCommandResult(
            error=InvalidInputError(
                "files must be a sequence of file descriptors",
                field="files",
                value=files,
            )
        )

    lines: List[str] = list(PREAMBLE)
    if wipe is True:
        lines.append(CMD_FORMAT_DATA)

    for entry in files:
        signature = _field(entry, "signature")
        path = _field(entry, "path")
        if not signature or not path:
            continue
        lines.append(
            f"{CMD_UPDATE} {posixpath.basename(path)} {posixpath.basename(signature)}"
        )

    if _is_sequence(enable):
        lines.extend(f"{CMD_ENABLE} {name}" for name in enable)

    lines.append(CMD_UNMOUNT_SYSTEM)
    if installer_check:
        lines.append(CMD_INSTALLER_CHECK)

    return InstallCommandResult(script=InstallCommandScript(tuple(lines)))
