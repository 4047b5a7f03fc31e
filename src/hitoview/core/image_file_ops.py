import asyncio
import os
import logging
from typing import Tuple

import send2trash

from hitoview import HitoviewError

logger = logging.getLogger(__name__)


class DeleteError(HitoviewError):
    """Raised when an image could not be moved to the trash."""


class ImageFileOperations:
    """File system operations on gallery images."""

    @staticmethod
    def move_to_trash(image_path: str) -> Tuple[bool, str]:
        """
        Sends an image to the system trash / recycle bin.

        Returns (ok, message); on failure the message says why, and the file
        is left where it was.
        """
        name = os.path.basename(image_path)
        if not os.path.exists(image_path):
            return False, f"Image does not exist: {image_path}"
        if not os.path.isfile(image_path):
            return False, f"Path is not a file: {image_path}"
        try:
            send2trash.send2trash(image_path)
        except Exception as e:
            message = f"Could not move {name} to trash: {e}"
            logger.error(message, exc_info=True)
            return False, message
        logger.info(f"Trashed {name}")
        return True, f"{name} moved to trash"


class TrashService:
    """Delete service used by the modal viewer: trash the file or raise."""

    async def delete(self, path: str) -> None:
        loop = asyncio.get_running_loop()
        ok, message = await loop.run_in_executor(
            None, ImageFileOperations.move_to_trash, path
        )
        if not ok:
            raise DeleteError(message)
