"""
Constants and configuration values for avalanche-installer.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

# GitHub endpoints
GITHUB_API_BASE = "https://api.github.com"
GITHUB_DOWNLOAD_BASE = "https://github.com"
GITHUB_API_VERSION = "2022-11-28"
LATEST_RELEASE_PATH = "repos/{org}/{repo}/releases/latest"
RELEASE_DOWNLOAD_PATH = "{org}/{repo}/releases/download/{tag}/{filename}"

# Product identifiers
AVALANCHEGO_ORG = "ava-labs"
AVALANCHEGO_REPO = "avalanchego"
AVALANCHEGO_BINARY_NAME = "avalanchego"
AVALANCHEGO_DEFAULT_TAG = "v1.9.16"

SUBNET_EVM_ORG = "ava-labs"
SUBNET_EVM_REPO = "subnet-evm"
SUBNET_EVM_BINARY_NAME = "subnet-evm"
SUBNET_EVM_DEFAULT_TAG = "v0.4.8"

PLUGINS_DIR_NAME = "plugins"
ZIP_BUILD_DIR_NAME = "build"

# The release host has no real "latest" tag
LATEST_TAG_SENTINEL = "latest"

# Release API retry settings (in seconds)
AVALANCHEGO_RELEASE_MAX_ATTEMPTS = 10
AVALANCHEGO_RELEASE_RETRY_DELAY = 3.0
SUBNET_EVM_RELEASE_MAX_ATTEMPTS = 20
SUBNET_EVM_RELEASE_RETRY_DELAY = 5.0

# Object store retry settings (in seconds)
DEFAULT_STORE_MAX_ATTEMPTS = 20
DEFAULT_STORE_RETRY_DELAY = 5.0

# Network settings
DEFAULT_REQUEST_TIMEOUT = 300
DEFAULT_CHUNK_SIZE = 8192
HTTP_STATUS_ERROR_THRESHOLD = 400
HTTP_STATUS_RETRY_THRESHOLD = 500
HTTP_STATUS_TOO_MANY_REQUESTS = 429
BYTES_PER_MEGABYTE = 1024 * 1024
FILE_SIZE_MB_LOGGING_THRESHOLD = 1.0

# Scratch paths
TMP_PATH_LENGTH = 10
STORE_TMP_PATH_LENGTH = 15

# Placed binaries and plugins are executable by everyone
EXECUTABLE_PERMISSIONS = 0o777

# Archive suffixes
ZIP_EXTENSION = ".zip"
TAR_GZ_EXTENSION = ".tar.gz"

# Object-store placeholder entries under a plugin prefix
PLUGIN_PLACEHOLDER_NAMES = ("plugin", "plugin/")

# Configuration
APP_NAME = "avalanche-installer"
CONFIG_FILE_NAME = "config.yaml"
GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"

# Logging configuration
LOGGER_NAME = "avalanche_installer"
LOG_LEVEL_ENV_VAR = "AVALANCHE_INSTALLER_LOG_LEVEL"
LOG_FILE_NAME = "avalanche-installer.log"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5
