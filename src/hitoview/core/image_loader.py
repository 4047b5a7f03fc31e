from __future__ import annotations
import asyncio
import base64
import logging
import os
from typing import Optional

from PIL import Image, UnidentifiedImageError

from hitoview import HitoviewError
from .caching.image_data_cache import ImageDataCache

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
}
DEFAULT_MIME_TYPE = "image/png"


class ImageLoadError(HitoviewError):
    """Raised when an image cannot be read or decoded."""


def mime_type_for(path: str) -> str:
    ext = os.path.splitext(path)[1].lower().lstrip(".")
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


def encode_image_file(path: str) -> str:
    """Read an image file, check that it decodes, and return it as a data URL.

    SVG is passed through without decoding since Pillow cannot rasterize it.
    """
    if not os.path.exists(path):
        raise ImageLoadError(f"Image does not exist: {path}")
    if not os.path.isfile(path):
        raise ImageLoadError(f"Path is not a file: {path}")

    mime_type = mime_type_for(path)
    if mime_type != "image/svg+xml":
        try:
            with Image.open(path) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ImageLoadError(f"Failed to decode image {path}: {e}") from e

    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ImageLoadError(f"Failed to read image {path}: {e}") from e
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class ImageLoader:
    """Loads image data for display, going through the image data cache."""

    def __init__(self, cache: Optional[ImageDataCache] = None):
        self.cache = cache

    def get_cached(self, path: str) -> Optional[str]:
        if self.cache is None:
            return None
        return self.cache.get(path)

    async def load(self, path: str) -> str:
        cached = self.get_cached(path)
        if cached is not None:
            return cached
        loop = asyncio.get_running_loop()
        data_url = await loop.run_in_executor(None, encode_image_file, path)
        if self.cache is not None:
            self.cache.set(path, data_url)
        logger.debug(f"Loaded image data for {os.path.basename(path)}")
        return data_url

    def forget(self, path: str) -> None:
        if self.cache is not None:
            self.cache.delete(path)

    def clear(self) -> None:
        if self.cache is not None:
            self.cache.clear()
