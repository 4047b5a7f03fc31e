from __future__ import annotations
import asyncio
import concurrent.futures
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .models import (
    FilterOptions,
    ImageRef,
    SortDirection,
    SortOption,
    image_categories_from_entries,
)
from .sort_filter import filter_images, sort_images

logger = logging.getLogger(__name__)


class Sorter(Protocol):
    """External sorter contract.

    ``image_categories_entries`` uses the persisted entries format
    (``[[path, [assignment dicts]], ...]``) and ``filter_options`` the
    snake-case wire dict from ``FilterOptions.to_wire()`` (None = no filter).
    """

    async def sort(
        self,
        images: Sequence[ImageRef],
        sort_option: SortOption,
        sort_direction: SortDirection,
        image_categories_entries: List[List[Any]],
        filter_options: Optional[Dict[str, Any]],
    ) -> List[ImageRef]: ...


class ThreadPoolSorter:
    """Runs the canonical sort/filter in a worker thread.

    Large folders take long enough to sort by last-categorized time that doing
    it on the event loop thread stalls the UI, so the work is shipped to a
    small executor. The result is identical to the in-process fallback
    because both call into core.sort_filter.
    """

    def __init__(self, max_workers: int = 1):
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="hitoview-sort"
        )

    async def sort(
        self,
        images: Sequence[ImageRef],
        sort_option: SortOption,
        sort_direction: SortDirection,
        image_categories_entries: List[List[Any]],
        filter_options: Optional[Dict[str, Any]],
    ) -> List[ImageRef]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            _sort_and_filter,
            list(images),
            sort_option,
            sort_direction,
            image_categories_entries,
            filter_options,
        )

    def shutdown(self):
        logger.debug("Shutting down sorter executor")
        self._executor.shutdown(wait=False)


def _sort_and_filter(
    images: List[ImageRef],
    sort_option: SortOption,
    sort_direction: SortDirection,
    image_categories_entries: List[List[Any]],
    filter_options: Optional[Dict[str, Any]],
) -> List[ImageRef]:
    image_categories = image_categories_from_entries(image_categories_entries)
    filters = FilterOptions.from_wire(filter_options)
    filtered = filter_images(images, filters, image_categories)
    return sort_images(filtered, sort_option, sort_direction, image_categories)
