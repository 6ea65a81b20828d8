"""
HTTP Downloader Implementation

This module provides the default Downloader: a streaming requests transport
with urllib3 retries that writes to a temporary file and atomically moves it
into place.
"""

import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import requests

from sysimage.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    DEFAULT_REQUEST_TIMEOUT,
)
from sysimage.log_utils import logger
from sysimage.utils import build_session

from .interfaces import Downloader, Pathish


def _parse_content_length(value: Optional[str]) -> Optional[int]:
    try:
        size = int(value) if value else None
    except (TypeError, ValueError):
        return None
    return size if size is not None and size >= 0 else None


class HttpDownloader(Downloader):
    """
    Streams artifacts over HTTP(S).

    One requests Session is created per worker thread, since sessions are not
    safe to share across threads.
    """

    def __init__(
        self,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_DOWNLOADS,
        timeout: int = DEFAULT_REQUEST_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        session_factory: Callable[[], requests.Session] = build_session,
    ):
        """
        Create an HttpDownloader.

        Parameters:
            max_concurrent (int): Number of fetches the orchestrator may run at once.
            timeout (int): Per-request timeout in seconds.
            chunk_size (int): Size of streamed chunks in bytes.
            session_factory (Callable[[], requests.Session]): Builds the per-thread sessions.
        """
        self.max_concurrent = max_concurrent
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.session_factory = session_factory
        self._local = threading.local()
        self._sessions: list = []
        self._sessions_lock = threading.Lock()

    def _get_session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def fetch(
        self,
        url: str,
        target_path: Pathish,
        on_size: Callable[[Optional[int]], None],
        on_chunk: Callable[[int], None],
    ) -> Path:
        """
        Stream `url` into `target_path`.

        The body is written to a `.tmp` sibling that replaces the target only
        after the whole body arrived; the temporary file is removed on failure.

        Returns:
            Path: The written target path.

        Raises:
            requests.RequestException: On transport or HTTP status errors.
            OSError: If the file cannot be written.
        """
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        temp_path = target.with_name(
            f"{target.name}.tmp.{os.getpid()}.{threading.get_ident()}"
        )

        logger.debug(f"Attempting to download {url} to temp path {temp_path}")
        start_time = time.time()
        downloaded_bytes = 0
        try:
            with self._get_session().get(
                url, stream=True, timeout=self.timeout
            ) as response:
                logger.debug(
                    f"Received HTTP response status code: {response.status_code} for URL: {url}"
                )
                response.raise_for_status()
                on_size(_parse_content_length(response.headers.get("Content-Length")))

                with open(temp_path, "wb") as file:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            file.write(chunk)
                            downloaded_bytes += len(chunk)
                            on_chunk(len(chunk))

            os.replace(temp_path, target)
        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as e:
                    logger.debug(f"Error cleaning up temp file {temp_path}: {e}")

        elapsed = time.time() - start_time
        file_size_mb = downloaded_bytes / (1024 * 1024)
        logger.debug("Download elapsed time: %.2fs for %s", elapsed, url)
        if file_size_mb >= 1.0:
            logger.info(f"Downloaded: {target.name} ({file_size_mb:.1f} MB)")
        else:
            logger.info(f"Downloaded: {target.name} ({downloaded_bytes} bytes)")
        return target

    def close(self) -> None:
        """Close every session opened by this downloader."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()
