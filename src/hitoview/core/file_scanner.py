import os
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List

from hitoview import HitoviewError
from .app_settings import MIN_IMAGE_SIZE_BYTES, SUPPORTED_EXTENSIONS
from .models import DirectoryRef, ImageRef

logger = logging.getLogger(__name__)


class DirectoryScanError(HitoviewError):
    """Raised when a directory cannot be listed."""


@dataclass
class DirectoryContents:
    directories: List[DirectoryRef] = field(default_factory=list)
    images: List[ImageRef] = field(default_factory=list)


def _created_at(stat_result: os.stat_result) -> float:
    # st_birthtime exists on macOS/BSD and recent Windows builds; ctime elsewhere
    return getattr(stat_result, "st_birthtime", stat_result.st_ctime)


def list_directory(path: str) -> DirectoryContents:
    """
    Lists the immediate subdirectories and image files of a directory.

    Only files with a supported extension and at least MIN_IMAGE_SIZE_BYTES are
    kept. Both lists are sorted by path.
    """
    start_time = time.perf_counter()
    if not os.path.exists(path):
        raise DirectoryScanError(f"Path does not exist: {path}")
    if not os.path.isdir(path):
        raise DirectoryScanError(f"Path is not a directory: {path}")

    contents = DirectoryContents()
    try:
        with os.scandir(path) as entries:
            for entry in entries:
                try:
                    if entry.is_dir():
                        contents.directories.append(DirectoryRef(path=entry.path))
                        continue
                    if not entry.is_file():
                        continue
                    ext = os.path.splitext(entry.name)[1].lower().lstrip(".")
                    if ext not in SUPPORTED_EXTENSIONS:
                        continue
                    stat_result = entry.stat()
                    if stat_result.st_size < MIN_IMAGE_SIZE_BYTES:
                        continue
                    contents.images.append(
                        ImageRef(
                            path=entry.path,
                            size_bytes=stat_result.st_size,
                            created_at=_created_at(stat_result),
                        )
                    )
                except OSError as e:
                    logger.warning(f"Skipping unreadable entry {entry.path}: {e}")
    except OSError as e:
        raise DirectoryScanError(f"Failed to read directory: {e}") from e

    contents.directories.sort(key=lambda d: d.path)
    contents.images.sort(key=lambda i: i.path)
    logger.info(
        f"Listed {len(contents.images)} images and {len(contents.directories)} "
        f"directories in {path} ({time.perf_counter() - start_time:.3f}s)"
    )
    return contents


async def list_directory_async(path: str) -> DirectoryContents:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, list_directory, path)
