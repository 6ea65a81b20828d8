import hashlib
import importlib.metadata
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry  # type: ignore

from sysimage.constants import (
    APP_NAME,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_RETRIES,
    RETRY_STATUS_FORCELIST,
)
from sysimage.log_utils import logger


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `sysimage/{version}`, where `{version}` is the installed package version or `unknown` if it cannot be determined.
    """
    try:
        app_version = importlib.metadata.version(APP_NAME)
    except importlib.metadata.PackageNotFoundError:
        app_version = "unknown"
    return f"{APP_NAME}/{app_version}"


def build_session(retries: int = DEFAULT_CONNECT_RETRIES) -> requests.Session:
    """
    Create a requests Session with retry-capable adapters and the sysimage User-Agent.

    Connection, read and status failures (408, 429 and 5xx) are retried with
    exponential backoff by urllib3 before the final response is handed back.

    Parameters:
        retries (int): Maximum number of retries per request.

    Returns:
        requests.Session: A configured session; the caller owns and closes it.
    """
    retry_strategy: Retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=DEFAULT_BACKOFF_FACTOR,
        status_forcelist=list(RETRY_STATUS_FORCELIST),
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": get_user_agent()})
    return session


def calculate_checksum(file_path: str, algorithm: str = "sha256") -> Optional[str]:
    """
    Compute the hex digest of a file with the named hashlib algorithm.

    Reads the file in binary chunks without loading it into memory.

    Parameters:
        file_path (str): Path to the file to hash.
        algorithm (str): hashlib algorithm name, e.g. "sha256".

    Returns:
        Optional[str]: Lowercase hex digest, or None if the file cannot be read.

    Raises:
        ValueError: If `algorithm` is not supported by hashlib.
    """
    digest = hashlib.new(algorithm)
    try:
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(DEFAULT_CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as e:
        logger.debug(f"Error calculating {algorithm} for {file_path}: {e}")
        return None
    return digest.hexdigest()
