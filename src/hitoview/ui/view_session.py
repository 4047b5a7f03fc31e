from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging
import os

from PyQt6.QtCore import QObject, pyqtSignal

from hitoview.core.models import (
    Category,
    CategoryAssignment,
    DirectoryRef,
    FilterOptions,
    HotkeyConfig,
    ImageCategories,
    ImageRef,
    SortDirection,
    SortOption,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """Consistent read-only view of a ViewSession for presentation layers."""

    reset_version: int
    current_directory: str
    images: Tuple[ImageRef, ...]
    directories: Tuple[DirectoryRef, ...]
    resolved_images: Tuple[ImageRef, ...]
    resolved_directories: Tuple[DirectoryRef, ...]
    sort_filter_key: str
    categories: Tuple[Category, ...]
    image_categories: Dict[str, Tuple[CategoryAssignment, ...]]
    hotkeys: Tuple[HotkeyConfig, ...]
    sort_option: SortOption
    sort_direction: SortDirection
    filter_options: FilterOptions
    modal_index: int
    modal_path: str
    modal_image_data: Optional[str]
    suppress_refilter: bool
    shortcuts_overlay_visible: bool
    last_error: Optional[str]
    visible_count: int = 0
    current_page: Tuple[ImageRef, ...] = field(default_factory=tuple)

    @property
    def is_modal_open(self) -> bool:
        return self.modal_index >= 0


class ViewSession(QObject):
    """
    Single source of truth for one browsing session.

    Controllers mutate it through the setter methods below; every setter emits
    its change signal synchronously so connected consumers (pagination clamp,
    views) observe the new state before the setter returns. Presentation code
    reads ``snapshot()`` and never assigns fields directly.

    Ownership of fields by writer:
      * modal_index / modal_path / modal_image_data: ModalController only
      * suppress_refilter / cached_categories_snapshot: set by the
        CategoryController, cleared by the ModalController
      * resolved_images / resolved_directories: SortFilterController only
    """

    images_changed = pyqtSignal()
    categories_changed = pyqtSignal()
    image_categories_changed = pyqtSignal()
    hotkeys_changed = pyqtSignal()
    sort_filter_changed = pyqtSignal()
    resolved_changed = pyqtSignal(str, int)  # sort_filter_key, resolved image count
    modal_changed = pyqtSignal(int, str)  # modal_index, modal_path
    modal_image_loaded = pyqtSignal(str)  # path
    refilter_state_changed = pyqtSignal(bool)  # suppress_refilter
    shortcuts_overlay_changed = pyqtSignal(bool)
    error_occurred = pyqtSignal(str)
    session_reset = pyqtSignal(int)  # reset_version

    def __init__(self, parent=None):
        super().__init__(parent)
        self.reset_version = 0
        self._init_fields()

    def _init_fields(self):
        self.current_directory: str = ""
        self.config_file_path: str = ""  # empty -> default name in current dir
        self.images: List[ImageRef] = []
        self.directories: List[DirectoryRef] = []
        self.categories: List[Category] = []
        self.image_categories: ImageCategories = {}
        self.hotkeys: List[HotkeyConfig] = []
        self.sort_option = SortOption.NAME
        self.sort_direction = SortDirection.ASCENDING
        self.filter_options = FilterOptions()
        self.modal_index: int = -1
        self.modal_path: str = ""
        self.modal_image_data: Optional[str] = None
        self.suppress_refilter: bool = False
        self.cached_categories_snapshot: Optional[ImageCategories] = None
        self.resolved_images: List[ImageRef] = []
        self.resolved_directories: List[DirectoryRef] = []
        self.sort_filter_key: str = ""
        self.shortcuts_overlay_visible: bool = False
        self.is_deleting: bool = False
        self.last_error: Optional[str] = None

    # --- Lifecycle ---
    def reset(self, directory: str = ""):
        """Replace the session with an empty one, bumping reset_version."""
        self._init_fields()
        self.current_directory = directory
        self.reset_version += 1
        logger.info(
            f"Session reset (version {self.reset_version}) for "
            f"'{os.path.basename(directory) or directory or '<home>'}'"
        )
        self.session_reset.emit(self.reset_version)
        self.resolved_changed.emit(self.sort_filter_key, 0)

    # --- Derived state ---
    @property
    def is_modal_open(self) -> bool:
        return self.modal_index >= 0

    @property
    def image_paths(self) -> List[str]:
        return [img.path for img in self.images]

    def effective_image_categories(self) -> ImageCategories:
        """Categories the resolver must use: the snapshot while suppressed."""
        if self.suppress_refilter and self.cached_categories_snapshot is not None:
            return self.cached_categories_snapshot
        return self.image_categories

    def get_category(self, category_id: str) -> Optional[Category]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def assignments_for(self, path: str) -> Tuple[CategoryAssignment, ...]:
        return self.image_categories.get(path, ())

    # --- Setters ---
    def set_contents(self, images: List[ImageRef], directories: List[DirectoryRef]):
        self.images = list(images)
        self.directories = list(directories)
        known = {img.path for img in self.images}
        pruned = {p: a for p, a in self.image_categories.items() if p in known}
        if len(pruned) != len(self.image_categories):
            self.image_categories = pruned
            self.image_categories_changed.emit()
        self.images_changed.emit()

    def set_categories(self, categories: List[Category]):
        self.categories = list(categories)
        self.categories_changed.emit()

    def set_image_categories(self, image_categories: ImageCategories):
        """Replace the assignment map. Entries for unknown paths are dropped."""
        known = {img.path for img in self.images}
        dropped = [p for p in image_categories if p not in known]
        if dropped:
            logger.debug(
                f"Dropping category assignments for {len(dropped)} unknown paths"
            )
        self.image_categories = {
            p: tuple(a) for p, a in image_categories.items() if p in known and a
        }
        self.image_categories_changed.emit()

    def set_hotkeys(self, hotkeys: List[HotkeyConfig]):
        self.hotkeys = list(hotkeys)
        self.hotkeys_changed.emit()

    def set_sort(self, sort_option: SortOption, sort_direction: SortDirection):
        self.sort_option = sort_option
        self.sort_direction = sort_direction
        self.sort_filter_changed.emit()

    def set_filter_options(self, filter_options: FilterOptions):
        self.filter_options = filter_options
        self.sort_filter_changed.emit()

    def set_resolved(
        self,
        images: List[ImageRef],
        directories: List[DirectoryRef],
        sort_filter_key: str,
    ):
        self.resolved_images = list(images)
        self.resolved_directories = list(directories)
        self.sort_filter_key = sort_filter_key
        self.resolved_changed.emit(sort_filter_key, len(self.resolved_images))

    def set_modal_state(
        self, modal_index: int, modal_path: str, image_data: Optional[str] = None
    ):
        self.modal_index = modal_index
        self.modal_path = modal_path
        self.modal_image_data = image_data
        self.modal_changed.emit(modal_index, modal_path)

    def set_modal_image_data(self, path: str, image_data: str):
        self.modal_image_data = image_data
        self.modal_image_loaded.emit(path)

    def begin_refilter_suppression(self):
        """Snapshot the live assignments (once) and start suppressing refilter."""
        if self.cached_categories_snapshot is None:
            self.cached_categories_snapshot = dict(self.image_categories)
        if not self.suppress_refilter:
            self.suppress_refilter = True
            self.refilter_state_changed.emit(True)

    def clear_refilter_suppression(self) -> bool:
        """Drop suppression and the snapshot. Returns whether it was active."""
        was_active = self.suppress_refilter
        self.suppress_refilter = False
        self.cached_categories_snapshot = None
        if was_active:
            self.refilter_state_changed.emit(False)
        return was_active

    def set_shortcuts_overlay_visible(self, visible: bool):
        if self.shortcuts_overlay_visible == visible:
            return
        self.shortcuts_overlay_visible = visible
        self.shortcuts_overlay_changed.emit(visible)

    def report_error(self, message: str):
        self.last_error = message
        self.error_occurred.emit(message)

    def remove_image(self, path: str):
        """Remove every in-memory trace of an image path."""
        self.images = [img for img in self.images if img.path != path]
        if path in self.image_categories:
            self.image_categories = {
                p: a for p, a in self.image_categories.items() if p != path
            }
            self.image_categories_changed.emit()
        if (
            self.cached_categories_snapshot is not None
            and path in self.cached_categories_snapshot
        ):
            self.cached_categories_snapshot = {
                p: a for p, a in self.cached_categories_snapshot.items() if p != path
            }
        logger.debug(f"Removed {os.path.basename(path)} from session")
        self.images_changed.emit()

    # --- Read model ---
    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            reset_version=self.reset_version,
            current_directory=self.current_directory,
            images=tuple(self.images),
            directories=tuple(self.directories),
            resolved_images=tuple(self.resolved_images),
            resolved_directories=tuple(self.resolved_directories),
            sort_filter_key=self.sort_filter_key,
            categories=tuple(self.categories),
            image_categories=dict(self.image_categories),
            hotkeys=tuple(
                HotkeyConfig(h.id, h.key, list(h.modifiers), h.action)
                for h in self.hotkeys
            ),
            sort_option=self.sort_option,
            sort_direction=self.sort_direction,
            filter_options=self.filter_options,
            modal_index=self.modal_index,
            modal_path=self.modal_path,
            modal_image_data=self.modal_image_data,
            suppress_refilter=self.suppress_refilter,
            shortcuts_overlay_visible=self.shortcuts_overlay_visible,
            last_error=self.last_error,
        )
