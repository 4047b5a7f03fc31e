"""
Application Settings Module
Manages persistent application settings using QSettings.
"""

import os
from PyQt6.QtCore import QSettings

# --- Settings Constants ---

# Settings organization and application name
SETTINGS_ORGANIZATION = "Hitoview"
SETTINGS_APPLICATION = "Hitoview"

# Settings keys
BATCH_SIZE_KEY = "Grid/BatchSize"  # Images added to the page per scroll batch
CONFIG_FILE_NAME_KEY = "Config/FileName"  # Per-directory config file name
IMAGE_DATA_CACHE_SIZE_MB_KEY = "Cache/ImageDataCacheSizeMB"  # Loaded image cache
RECENT_FOLDERS_KEY = "UI/RecentFolders"  # Key for recent folders list

# Default values
DEFAULT_BATCH_SIZE = 30
DEFAULT_CONFIG_FILE_NAME = ".hito.json"
DEFAULT_IMAGE_DATA_CACHE_SIZE_MB = 512
MAX_RECENT_FOLDERS = 10  # Max number of recent folders to store

# --- Directory Scan Constants ---
SUPPORTED_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "bmp", "webp", "svg", "ico")
MIN_IMAGE_SIZE_BYTES = 15 * 1024  # Smaller files are treated as icons/noise

# --- Category Constants ---
CATEGORY_COLOR_PALETTE = (
    "#22c55e",
    "#3b82f6",
    "#a855f7",
    "#f59e0b",
    "#ef4444",
    "#06b6d4",
    "#ec4899",
    "#84cc16",
    "#f97316",
    "#6366f1",
)

# --- Cache Constants ---
DEFAULT_IMAGE_DATA_CACHE_DIR = os.path.join(
    os.path.expanduser("~"), ".cache", "hitoview_image_data"
)
IMAGE_DATA_MIN_FILE_SIZE = 64 * 1024  # Values above this are stored as files


def _get_settings() -> QSettings:
    """Get a QSettings instance with the application's organization and name."""
    return QSettings(SETTINGS_ORGANIZATION, SETTINGS_APPLICATION)


# --- Batch Size ---
def get_batch_size() -> int:
    """Gets the number of images added to the visible page per batch."""
    settings = _get_settings()
    value = settings.value(BATCH_SIZE_KEY, DEFAULT_BATCH_SIZE, type=int)
    return value if value > 0 else DEFAULT_BATCH_SIZE


def set_batch_size(batch_size: int):
    """Sets the pagination batch size."""
    settings = _get_settings()
    settings.setValue(BATCH_SIZE_KEY, batch_size)


# --- Config File Name ---
def get_config_file_name() -> str:
    """Gets the file name used for per-directory category/hotkey config."""
    settings = _get_settings()
    return (
        settings.value(CONFIG_FILE_NAME_KEY, DEFAULT_CONFIG_FILE_NAME, type=str)
        or DEFAULT_CONFIG_FILE_NAME
    )


def set_config_file_name(file_name: str):
    """Sets the per-directory config file name."""
    settings = _get_settings()
    settings.setValue(CONFIG_FILE_NAME_KEY, file_name)


# --- Image Data Cache Size ---
def get_image_data_cache_size_mb() -> int:
    """Gets the configured loaded-image cache size in MB from settings."""
    settings = _get_settings()
    return settings.value(
        IMAGE_DATA_CACHE_SIZE_MB_KEY, DEFAULT_IMAGE_DATA_CACHE_SIZE_MB, type=int
    )


def set_image_data_cache_size_mb(size_mb: int):
    """Sets the loaded-image cache size in MB in settings."""
    settings = _get_settings()
    settings.setValue(IMAGE_DATA_CACHE_SIZE_MB_KEY, size_mb)


def get_image_data_cache_size_bytes() -> int:
    """Gets the configured loaded-image cache size in bytes."""
    return get_image_data_cache_size_mb() * 1024 * 1024


# --- Recent Folders ---
def get_recent_folders() -> list[str]:
    """Recently opened directories, newest first. Vanished ones are skipped."""
    stored = _get_settings().value(RECENT_FOLDERS_KEY, [], type=list)
    return [folder for folder in stored if os.path.isdir(folder)]


def add_recent_folder(path: str):
    """Moves (or inserts) a directory to the front of the recent list."""
    if not path or not os.path.isdir(path):
        return
    settings = _get_settings()
    normalized = os.path.normpath(path)
    stored = settings.value(RECENT_FOLDERS_KEY, [], type=list)
    key = os.path.normcase(normalized)
    others = [p for p in stored if os.path.normcase(os.path.normpath(p)) != key]
    settings.setValue(
        RECENT_FOLDERS_KEY, ([normalized] + others)[:MAX_RECENT_FOLDERS]
    )
