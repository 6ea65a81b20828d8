"""
File Operations for the sysimage Download Subsystem

This module provides atomic writes, the install command file writer and the
push manifest that maps local artifacts onto the device.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Iterable, List

from sysimage.constants import COMMAND_DIR_NAME, COMMAND_FILE_NAME, DEVICE_PUSH_DIR
from sysimage.exceptions import FileSystemError
from sysimage.log_utils import logger

from .interfaces import Artifact, InstallCommandScript, Pathish, PushEntry


def _atomic_write(
    file_path: str, writer_func: Callable[[Any], None], suffix: str = ".tmp"
) -> bool:
    """
    Write data to a file atomically by writing to a temporary file and atomically replacing the target on success.

    Parameters:
        file_path (str): Destination file path to be written.
        writer_func (Callable[[Any], None]): Callable that receives an open text file-like object and writes the desired content to it.
        suffix (str): Suffix to use for the temporary file name (default ".tmp").

    Returns:
        bool: `True` if the temporary write and atomic replace succeeded, `False` on any error.
    """
    try:
        temp_fd, temp_path = tempfile.mkstemp(
            dir=os.path.dirname(file_path), prefix="tmp-", suffix=suffix
        )
    except OSError as e:
        logger.error(f"Could not create temporary file for {file_path}: {e}")
        return False

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8", newline="\n") as temp_f:
            writer_func(temp_f)
        os.replace(temp_path, file_path)
    except (UnicodeEncodeError, OSError) as e:
        logger.error(f"Could not write to {file_path}: {e}")
        return False
    finally:
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError:
                pass
    return True


def ensure_directory_exists(directory: Pathish) -> Path:
    """
    Create `directory` and any missing parents.

    Returns:
        Path: The directory.

    Raises:
        FileSystemError: If the directory cannot be created.
    """
    path = Path(directory)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(
            f"Could not create directory {path}", path=str(path), details=str(e)
        ) from e
    return path


class FileStager:
    """Writes the install command file and builds the device push manifest."""

    def __init__(self, push_dir: str = DEVICE_PUSH_DIR):
        self.push_dir = push_dir

    def write_command_file(self, script: InstallCommandScript, root: Pathish) -> Path:
        """
        Write an install script to `{root}/commandfile/ubuntu_command`.

        The directory is created if missing and the file is replaced atomically.

        Returns:
            Path: Path of the written command file.

        Raises:
            FileSystemError: If the directory or the file cannot be written.
        """
        command_dir = ensure_directory_exists(Path(root) / COMMAND_DIR_NAME)
        command_file = command_dir / COMMAND_FILE_NAME
        text = script.to_text()
        if not _atomic_write(str(command_file), lambda f: f.write(text)):
            raise FileSystemError(
                f"Could not write install commands to {command_file}",
                path=str(command_file),
            )
        logger.debug(f"Wrote {len(script.lines)} install commands to {command_file}")
        return command_file

    def build_push_manifest(
        self, artifacts: Iterable[Artifact], command_file: Pathish
    ) -> List[PushEntry]:
        """
        Map artifacts and the command file to their device destinations.

        Every artifact is pushed into the device push directory; the command
        file is appended last under its fixed device name.

        Returns:
            List[PushEntry]: One entry per artifact followed by the command file entry.
        """
        manifest = [
            PushEntry(src=artifact.local_path, dest=self.push_dir)
            for artifact in artifacts
        ]
        manifest.append(
            PushEntry(src=str(command_file), dest=self.push_dir + COMMAND_FILE_NAME)
        )
        return manifest
