from __future__ import annotations
import logging
import os
from typing import List, Optional, Protocol

from hitoview.core.image_file_ops import DeleteError
from hitoview.ui.helpers.navigation_utils import (
    find_step_target,
    find_surviving_neighbor,
)

logger = logging.getLogger(__name__)


class ModalContext(Protocol):
    session: object  # ViewSession
    sort_filter: object  # SortFilterController
    image_loader: object  # ImageLoader
    trash_service: object  # TrashService


class ModalController:
    """Single-image viewer navigation.

    The only writer of the session's modal_index / modal_path. Image loads
    are tagged with a request id; a completion is committed only if it is
    still the latest request and the session still shows the requested
    index, so a slow load can never replace a newer image.
    """

    def __init__(self, ctx: ModalContext):
        self.ctx = ctx
        self._load_request_id = 0

    # --- Public API ---
    async def open_modal(self, index: int) -> bool:
        session = self.ctx.session
        resolved = session.resolved_images
        if index < 0 or index >= len(resolved):
            logger.debug(f"open_modal ignored, index {index} out of range")
            return False

        self._load_request_id += 1
        request_id = self._load_request_id
        path = resolved[index].path

        cached = self.ctx.image_loader.get_cached(path)
        session.set_modal_state(index, path, cached)
        if cached is not None:
            session.set_shortcuts_overlay_visible(False)
            return True

        try:
            data = await self.ctx.image_loader.load(path)
        except Exception as e:
            if not self._is_current(request_id, path):
                logger.debug(f"Ignoring load failure of superseded request #{request_id}")
                return False
            logger.error(f"Error loading image {os.path.basename(path)}: {e}")
            session.report_error(f"Error loading image: {e}")
            self.close_modal()
            return False

        if not self._is_current(request_id, path):
            logger.debug(
                f"Discarding stale image load #{request_id} for {os.path.basename(path)}"
            )
            return False
        session.set_modal_image_data(path, data)
        session.set_shortcuts_overlay_visible(False)
        return True

    async def open_modal_by_path(self, path: str) -> bool:
        paths = [img.path for img in self.ctx.session.resolved_images]
        if path not in paths:
            return False
        return await self.open_modal(paths.index(path))

    def close_modal(self) -> None:
        session = self.ctx.session
        self._load_request_id += 1  # any in-flight load is now stale
        session.set_modal_state(-1, "", None)
        session.set_shortcuts_overlay_visible(False)
        if session.clear_refilter_suppression():
            self.ctx.sort_filter.resolve_now()

    async def show_next(self) -> bool:
        return await self._step(1)

    async def show_previous(self) -> bool:
        return await self._step(-1)

    async def reconcile(self, previous_paths: Optional[List[str]] = None) -> bool:
        """Re-sync the modal with the current resolved sequence.

        Keeps modal_index pointing at modal_path after a reorder, and moves
        forward to the next matching image when the modal image is no longer
        part of the sequence. Returns True if the modal moved to another image.
        """
        session = self.ctx.session
        if not session.is_modal_open:
            return False
        current = session.modal_path
        paths = [img.path for img in session.resolved_images]
        if current in paths:
            index = paths.index(current)
            if index != session.modal_index:
                session.set_modal_state(index, current, session.modal_image_data)
            return False
        return await self._leave_missing_image(previous_paths or [], current, 1, paths)

    def toggle_shortcuts_overlay(self) -> None:
        session = self.ctx.session
        session.set_shortcuts_overlay_visible(not session.shortcuts_overlay_visible)

    def hide_shortcuts_overlay(self) -> None:
        self.ctx.session.set_shortcuts_overlay_visible(False)

    async def delete_current_image(self) -> bool:
        """Trash the modal image and show its successor.

        Nothing is removed from memory unless the trash call succeeds.
        Raises DeleteError on failure.
        """
        session = self.ctx.session
        if session.is_deleting:
            return False
        path = session.modal_path
        if not path:
            return False

        before = [img.path for img in session.resolved_images]
        deleted_index = before.index(path) if path in before else session.modal_index

        session.is_deleting = True
        try:
            try:
                await self.ctx.trash_service.delete(path)
            except Exception as e:
                message = f"Failed to delete image: {e}"
                logger.error(message)
                session.report_error(message)
                if isinstance(e, DeleteError):
                    raise
                raise DeleteError(message) from e

            self.ctx.image_loader.forget(path)
            session.remove_image(path)
            remaining = self.ctx.sort_filter.resolve_now()
        finally:
            session.is_deleting = False

        if not remaining:
            logger.info("Image deleted. No more images in this view.")
            self.close_modal()
            return True
        target = min(max(deleted_index, 0), len(remaining) - 1)
        await self.open_modal(target)
        return True

    # --- Internal helpers ---
    def _is_current(self, request_id: int, path: str) -> bool:
        # modal_index may move under reconcile() while the same image stays open
        return (
            request_id == self._load_request_id
            and self.ctx.session.modal_path == path
        )

    async def _step(self, step: int) -> bool:
        session = self.ctx.session
        if not session.is_modal_open or not session.modal_path:
            return False
        current = session.modal_path
        previous_paths = [img.path for img in session.resolved_images]

        # Explicit navigation ends any deferred refilter
        if session.clear_refilter_suppression():
            logger.debug("Refilter suppression cleared by navigation")
        resolved = self.ctx.sort_filter.resolve_now()
        paths = [img.path for img in resolved]

        if current not in paths:
            return await self._leave_missing_image(previous_paths, current, step, paths)

        target = find_step_target(paths, current, step)
        if target is None:
            index = paths.index(current)
            if index != session.modal_index:
                session.set_modal_state(index, current, session.modal_image_data)
            return False
        return await self.open_modal(target)

    async def _leave_missing_image(
        self, previous_paths: List[str], current: str, step: int, paths: List[str]
    ) -> bool:
        if not paths:
            logger.debug("Modal image left the view and nothing remains; closing")
            self.close_modal()
            return False
        target_path = find_surviving_neighbor(previous_paths, current, step, paths)
        if target_path is None:
            target_index = 0 if step > 0 else len(paths) - 1
        else:
            target_index = paths.index(target_path)
        return await self.open_modal(target_index)
