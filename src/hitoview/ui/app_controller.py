import logging
import time
from dataclasses import replace
from typing import Awaitable, Callable, Dict, List, Optional

from PyQt6.QtCore import QObject

from hitoview import HitoviewError
from hitoview.core.app_settings import add_recent_folder, get_batch_size
from hitoview.core.config_store import ConfigStoreError, HitoConfig, JsonConfigStore
from hitoview.core.file_scanner import DirectoryContents, list_directory_async
from hitoview.core.image_file_ops import DeleteError, TrashService
from hitoview.core.image_loader import ImageLoader
from hitoview.core.models import (
    Category,
    FilterOptions,
    SortDirection,
    SortOption,
    image_categories_from_entries,
)
from hitoview.core.sorter import Sorter
from hitoview.ui.controllers.category_controller import CategoryController
from hitoview.ui.controllers.hotkey_controller import (
    HotkeyController,
    KeyEvent,
    default_hotkeys,
)
from hitoview.ui.controllers.modal_controller import ModalController
from hitoview.ui.controllers.pagination_controller import PaginationController
from hitoview.ui.controllers.preview_controller import PreviewController
from hitoview.ui.controllers.sort_filter_controller import SortFilterController
from hitoview.ui.helpers.persistence_utils import config_location, save_session_config
from hitoview.ui.view_session import SessionSnapshot, ViewSession

logger = logging.getLogger(__name__)


class AppController(QObject):
    """
    Command surface of one browsing session.

    Owns the ViewSession and the per-concern controllers, and acts as their
    shared context object. Presentation code calls the commands below and
    reads ``read_model()``; it never touches session fields directly.
    """

    def __init__(
        self,
        sorter: Optional[Sorter] = None,
        config_store: Optional[JsonConfigStore] = None,
        image_loader: Optional[ImageLoader] = None,
        trash_service: Optional[TrashService] = None,
        batch_size: Optional[int] = None,
        scanner: Optional[Callable[[str], Awaitable[DirectoryContents]]] = None,
        track_recent_folders: bool = True,
        parent=None,
    ):
        super().__init__(parent)
        self.session = ViewSession(self)
        self.sorter = sorter
        self.config_store = config_store or JsonConfigStore()
        self.image_loader = image_loader or ImageLoader()
        self.trash_service = trash_service or TrashService()
        self.scanner = scanner or list_directory_async
        self.track_recent_folders = track_recent_folders
        self._open_request_id = 0

        self.sort_filter = SortFilterController(self)
        self.pagination = PaginationController(
            self, batch_size if batch_size is not None else get_batch_size()
        )
        self.modal = ModalController(self)
        self.categories = CategoryController(self)
        self.hotkeys = HotkeyController(self)
        self.preview = PreviewController(self)

        self.connect_signals()

    def connect_signals(self):
        # Pagination must see every resolved change before anyone else reads it
        self.session.resolved_changed.connect(self.pagination.on_resolved_changed)

    # --- Directory lifecycle ---
    async def open_directory(self, path: str, config_file_path: str = "") -> bool:
        """Scan a directory and start a fresh session on it.

        Raises DirectoryScanError when the path cannot be listed. Returns False
        if another open/reset superseded this one while it was loading.
        """
        start_time = time.perf_counter()
        self._open_request_id += 1
        request_id = self._open_request_id
        contents = await self.scanner(path)
        if request_id != self._open_request_id:
            logger.info(f"Scan of {path} superseded by a newer request")
            return False

        self.modal.close_modal()
        self.session.reset(path)
        version = self.session.reset_version
        self.session.config_file_path = config_file_path
        self.session.set_contents(contents.images, contents.directories)

        config = await self._load_config()
        if self.session.reset_version != version:
            logger.info(f"Open of {path} superseded by a newer session")
            return False

        self.session.set_categories(config.categories)
        self.session.set_image_categories(
            image_categories_from_entries(config.image_categories_entries)
        )
        if config.hotkeys:
            self.session.set_hotkeys(config.hotkeys)
        else:
            self.session.set_hotkeys(default_hotkeys())
            try:
                await save_session_config(self.session, self.config_store)
            except ConfigStoreError as e:
                logger.warning(f"Could not save default hotkeys: {e}")

        await self.sort_filter.resolve()
        if self.session.reset_version != version:
            return False
        if self.track_recent_folders:
            add_recent_folder(path)
        logger.info(
            f"Opened {path}: {len(self.session.images)} images, "
            f"{len(self.session.directories)} directories "
            f"in {time.perf_counter() - start_time:.2f}s"
        )
        return True

    async def _load_config(self) -> HitoConfig:
        directory, filename = config_location(self.session)
        try:
            return await self.config_store.load(directory, filename)
        except ConfigStoreError as e:
            logger.error(f"Ignoring unreadable config: {e}")
            self.session.report_error(str(e))
            return HitoConfig()

    def reset_session(self):
        self._open_request_id += 1
        self.modal.close_modal()
        self.session.reset()
        self.image_loader.clear()
        # Claims a new resolve id so in-flight resolves of the old session are dropped
        self.sort_filter.resolve_now()

    # --- Sort / filter ---
    async def set_sort_option(self, sort_option: SortOption) -> bool:
        if not self.sort_filter.set_sort(sort_option=sort_option):
            return False
        await self._refresh()
        return True

    async def set_sort_direction(self, sort_direction: SortDirection) -> bool:
        if not self.sort_filter.set_sort(sort_direction=sort_direction):
            return False
        await self._refresh()
        return True

    async def set_filter_options(self, filter_options: FilterOptions) -> bool:
        if not self.sort_filter.set_filter_options(filter_options):
            return False
        await self._refresh()
        return True

    async def _refresh(self):
        previous_paths = [img.path for img in self.session.resolved_images]
        if await self.sort_filter.resolve() and not self.session.suppress_refilter:
            await self.modal.reconcile(previous_paths)

    # --- Categories ---
    async def assign_category(self, path: str, category_id: str) -> bool:
        return await self.categories.assign(path, category_id)

    async def remove_category(self, path: str, category_id: str) -> bool:
        return await self.categories.remove(path, category_id)

    async def toggle_category(self, path: str, category_id: str) -> bool:
        return await self.categories.toggle(path, category_id)

    async def delete_category(self, category_id: str) -> bool:
        return await self.categories.delete_category(category_id)

    async def add_category(self, name: str, color: Optional[str] = None) -> Category:
        return await self.categories.add_category(name, color)

    async def update_category(self, category_id: str, name: str, color: str) -> Category:
        return await self.categories.update_category(category_id, name, color)

    def category_counts(self) -> Dict[str, int]:
        return self.categories.category_counts()

    # --- Modal ---
    async def open_modal(self, index: int) -> bool:
        return await self.modal.open_modal(index)

    def close_modal(self):
        self.modal.close_modal()

    async def next_image(self) -> bool:
        return await self.modal.show_next()

    async def previous_image(self) -> bool:
        return await self.modal.show_previous()

    async def delete_current_image(self) -> bool:
        return await self.modal.delete_current_image()

    # --- Pagination / page loading ---
    async def extend_page(self) -> bool:
        return await self.pagination.extend_page()

    async def load_visible_images(self) -> Dict[str, str]:
        return await self.preview.load_paths(
            [img.path for img in self.pagination.current_page()]
        )

    # --- Keyboard ---
    async def handle_key_event(self, event: KeyEvent) -> bool:
        try:
            return await self.hotkeys.handle_key_event(event)
        except DeleteError as e:
            # Already reported on the session by the modal controller
            logger.error(f"Delete via keyboard failed: {e}")
            return True
        except HitoviewError as e:
            logger.error(f"Key action failed: {e}")
            self.session.report_error(str(e))
            return True

    # --- Read model ---
    def read_model(self) -> SessionSnapshot:
        return replace(
            self.session.snapshot(),
            visible_count=self.pagination.visible_count,
            current_page=tuple(self.pagination.current_page()),
        )

    def visible_paths(self) -> List[str]:
        return [img.path for img in self.pagination.current_page()]
