import diskcache
import os
import logging
import time
from typing import Optional

from ..app_settings import (
    DEFAULT_IMAGE_DATA_CACHE_DIR,
    IMAGE_DATA_MIN_FILE_SIZE,
    get_image_data_cache_size_bytes,
)

logger = logging.getLogger(__name__)


class ImageDataCache:
    """
    Disk-backed cache of loaded image data (data URLs) keyed by image path.
    Holds what the grid and the modal viewer have already loaded for the
    current session; it is cleared whenever a new session starts.
    """

    def __init__(
        self,
        cache_dir: str = DEFAULT_IMAGE_DATA_CACHE_DIR,
        size_limit_bytes: Optional[int] = None,
    ):
        init_start_time = time.perf_counter()
        if size_limit_bytes is None:
            size_limit_bytes = get_image_data_cache_size_bytes()
        logger.info(f"Initializing image data cache: {cache_dir}")
        os.makedirs(cache_dir, exist_ok=True)
        self._cache_dir = cache_dir
        self._cache = diskcache.Cache(
            directory=cache_dir,
            size_limit=size_limit_bytes,
            disk_min_file_size=IMAGE_DATA_MIN_FILE_SIZE,
        )
        logger.info(
            f"Image data cache initialized at {cache_dir} with size limit "
            f"{size_limit_bytes / (1024 * 1024):.0f} MB"
        )
        logger.debug(
            f"Initialization complete in {time.perf_counter() - init_start_time:.4f}s"
        )

    def get(self, path: str) -> Optional[str]:
        try:
            cached_item = self._cache.get(path)
            if isinstance(cached_item, str):
                return cached_item
            elif cached_item is not None:
                logger.warning(
                    f"Invalid item type in image data cache for '{path}': {type(cached_item)}"
                )
            return None
        except Exception as e:
            logger.error(
                f"Error reading from image data cache for '{path}': {e}", exc_info=True
            )
            return None

    def set(self, path: str, data: str) -> None:
        if not isinstance(data, str):
            logger.error(
                f"Attempted to cache non-string image data for '{path}'. Type: {type(data)}"
            )
            return
        try:
            self._cache.set(path, data)
        except Exception as e:
            logger.error(
                f"Error writing to image data cache for '{path}': {e}", exc_info=True
            )

    def delete(self, path: str) -> None:
        try:
            if path in self._cache:
                del self._cache[path]
        except Exception as e:
            logger.error(
                f"Error deleting item from image data cache for '{path}': {e}",
                exc_info=True,
            )

    def clear(self) -> None:
        """Clears all items from the cache."""
        try:
            count = len(self._cache)
            self._cache.clear()
            logger.info(f"Cleared {count} items from image data cache.")
        except Exception as e:
            logger.error(f"Error clearing image data cache: {e}", exc_info=True)

    def close(self) -> None:
        try:
            self._cache.close()
            logger.debug("Image data cache closed.")
        except Exception:
            logger.error("Error closing image data cache.", exc_info=True)

    def __contains__(self, path: str) -> bool:
        return path in self._cache

    def __len__(self) -> int:
        return len(self._cache)
