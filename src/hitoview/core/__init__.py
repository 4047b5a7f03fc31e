"""UI-agnostic building blocks: data model, sort/filter rules and I/O services."""

from .models import (
    UNCATEGORIZED,
    Category,
    CategoryAssignment,
    DirectoryRef,
    FilterOptions,
    HotkeyConfig,
    ImageRef,
    NameOperator,
    SizeOperator,
    SortDirection,
    SortOption,
)
from .sort_filter import resolve_local, sort_filter_key
from .sorter import Sorter, ThreadPoolSorter
from .config_store import ConfigStoreError, HitoConfig, JsonConfigStore
from .image_loader import ImageLoader, ImageLoadError
from .image_file_ops import DeleteError, ImageFileOperations, TrashService
from .file_scanner import DirectoryContents, DirectoryScanError, list_directory

__all__ = [
    "UNCATEGORIZED",
    "Category",
    "CategoryAssignment",
    "DirectoryRef",
    "FilterOptions",
    "HotkeyConfig",
    "ImageRef",
    "NameOperator",
    "SizeOperator",
    "SortDirection",
    "SortOption",
    "resolve_local",
    "sort_filter_key",
    "Sorter",
    "ThreadPoolSorter",
    "ConfigStoreError",
    "HitoConfig",
    "JsonConfigStore",
    "ImageLoader",
    "ImageLoadError",
    "DeleteError",
    "ImageFileOperations",
    "TrashService",
    "DirectoryContents",
    "DirectoryScanError",
    "list_directory",
]
