"""
Constants and configuration values for sysimage.

This module contains the hardcoded values, URLs, timeouts, file names and
other constants used throughout the release client.
"""

# Release server
DEFAULT_HOST = "https://system-image.ubports.com/"
CHANNELS_INDEX_FILE = "channels.json"
DEVICE_INDEX_FILE = "index.json"
HOST_URL_PATTERN = (
    r"https?://(www\.)?[-a-z0-9@:%._\+~#=]{2,256}\.[a-z]{2,6}\b"
    r"([-a-z0-9@:%_\+.~#?&//=]*)"
)
INSECURE_SCHEME = "http://"

# Index cache
DEFAULT_CACHE_TIME = 180  # seconds
CHANNELS_CACHE_KEY = "channels"

# Image types
IMAGE_TYPE_FULL = "full"

# Artifact layout
POOL_DIR_NAME = "pool"
GPG_DIR_NAME = "gpg"
COMMAND_DIR_NAME = "commandfile"
CHECKSUM_ALGORITHM = "sha256"

# Keyrings, in the order they are fetched
IMAGE_SIGNING_KEYRING = "image-signing.tar.xz"
IMAGE_MASTER_KEYRING = "image-master.tar.xz"
SIGNATURE_SUFFIX = ".asc"
KEYRING_FILES = (
    IMAGE_SIGNING_KEYRING,
    IMAGE_SIGNING_KEYRING + SIGNATURE_SUFFIX,
    IMAGE_MASTER_KEYRING,
    IMAGE_MASTER_KEYRING + SIGNATURE_SUFFIX,
)

# Device staging
DEVICE_PUSH_DIR = "/cache/recovery/"
COMMAND_FILE_NAME = "ubuntu_command"

# Install command grammar
CMD_FORMAT_SYSTEM = "format system"
CMD_FORMAT_DATA = "format data"
CMD_LOAD_KEYRING = "load_keyring"
CMD_MOUNT_SYSTEM = "mount system"
CMD_UNMOUNT_SYSTEM = "unmount system"
CMD_UPDATE = "update"
CMD_ENABLE = "enable"
CMD_INSTALLER_CHECK = "installer_check"

# Network timeouts and retry settings (in seconds)
INDEX_REQUEST_TIMEOUT = 10
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_CONNECT_RETRIES = 5
DEFAULT_BACKOFF_FACTOR = 0.3
RETRY_STATUS_FORCELIST = (408, 429, 500, 502, 503, 504)
DEFAULT_CHUNK_SIZE = 8192
DEFAULT_MAX_CONCURRENT_DOWNLOADS = 4

# Progress reporting
BYTES_PER_MEGABYTE = 1000000
PROGRESS_CEILING = 0.999

# Activity states reported while a release is being prepared
ACTIVITY_RESOLVING = "resolving"
ACTIVITY_DOWNLOADING = "downloading"
ACTIVITY_VERIFYING = "verifying"
ACTIVITY_STAGING = "staging"

# Configuration
APP_NAME = "sysimage"
CONFIG_FILE_NAME = "sysimage.yaml"
CONFIG_KEY_HOST = "HOST"
CONFIG_KEY_CACHE_TIME = "CACHE_TIME"
CONFIG_KEY_DOWNLOAD_DIR = "DOWNLOAD_DIR"
CONFIG_KEY_ALLOW_INSECURE = "ALLOW_INSECURE"
CONFIG_KEY_MAX_CONCURRENT = "MAX_CONCURRENT_DOWNLOADS"
CONFIG_KEY_SERVE_STALE = "SERVE_STALE_INDEX"

# Logging configuration
LOGGER_NAME = "sysimage"
LOG_LEVEL_ENV_VAR = "SYSIMAGE_LOG_LEVEL"
LOG_FILE_NAME = "sysimage.log"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5
