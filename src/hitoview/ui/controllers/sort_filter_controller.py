from __future__ import annotations
import logging
from typing import List, Optional, Protocol, Tuple

from hitoview.core.models import (
    DirectoryRef,
    FilterOptions,
    ImageRef,
    SortDirection,
    SortOption,
    image_categories_to_entries,
)
from hitoview.core.sort_filter import (
    resolve_local,
    sort_directories,
    sort_filter_key,
)
from hitoview.core.sorter import Sorter

logger = logging.getLogger(__name__)


class SortFilterContext(Protocol):
    session: object  # ViewSession
    sorter: Optional[Sorter]


class SortFilterController:
    """Turns session inputs into the ordered, filtered sequence.

    Responsibilities:
    - Track sort option/direction and filter options on the session
    - Run resolves through the external sorter, falling back to the local
      implementation when it is missing or fails
    - Tag each resolve with an operation id and drop results that were
      overtaken by a newer resolve
    """

    def __init__(self, ctx: SortFilterContext):
        self.ctx = ctx
        self._latest_op_id = 0

    @property
    def latest_op_id(self) -> int:
        return self._latest_op_id

    # --- Public API ---
    def set_sort(
        self,
        sort_option: Optional[SortOption] = None,
        sort_direction: Optional[SortDirection] = None,
    ) -> bool:
        session = self.ctx.session
        new_option = sort_option or session.sort_option
        new_direction = sort_direction or session.sort_direction
        if new_option == session.sort_option and new_direction == session.sort_direction:
            return False
        session.set_sort(new_option, new_direction)
        return True

    def set_filter_options(self, filter_options: FilterOptions) -> bool:
        session = self.ctx.session
        if filter_options == session.filter_options:
            return False
        session.set_filter_options(filter_options)
        return True

    def clear_filters(self) -> bool:
        return self.set_filter_options(FilterOptions())

    async def resolve(self) -> bool:
        """Resolve asynchronously and apply the result if still the latest.

        Returns False when the result was discarded as stale.
        """
        self._latest_op_id += 1
        op_id = self._latest_op_id
        session = self.ctx.session
        images = list(session.images)
        directories = list(session.directories)
        sort_option = session.sort_option
        sort_direction = session.sort_direction
        filter_options = session.filter_options
        image_categories = session.effective_image_categories()

        ordered_images = None
        sorter = getattr(self.ctx, "sorter", None)
        if sorter is not None and images:
            try:
                ordered_images = await sorter.sort(
                    images,
                    sort_option,
                    sort_direction,
                    image_categories_to_entries(image_categories),
                    filter_options.to_wire(),
                )
            except Exception as e:
                logger.error(
                    f"External sort failed, falling back to local sort: {e}",
                    exc_info=True,
                )
                ordered_images = None

        if ordered_images is None:
            ordered_images, ordered_dirs = resolve_local(
                images,
                directories,
                sort_option,
                sort_direction,
                filter_options,
                image_categories,
            )
        else:
            ordered_dirs = sort_directories(directories, sort_option, sort_direction)

        if op_id != self._latest_op_id:
            logger.debug(
                f"Discarding stale resolve #{op_id} (latest is #{self._latest_op_id})"
            )
            return False

        key = sort_filter_key(sort_option, sort_direction, filter_options, image_categories)
        session.set_resolved(list(ordered_images), ordered_dirs, key)
        return True

    def resolve_now(self) -> List[ImageRef]:
        """Resolve locally and apply immediately.

        Also claims a new operation id so any resolve still awaiting the
        external sorter is treated as stale.
        """
        self._latest_op_id += 1
        images, directories, key = self.compute()
        self.ctx.session.set_resolved(images, directories, key)
        return images

    def compute(self) -> Tuple[List[ImageRef], List[DirectoryRef], str]:
        """Local resolve of the current session state without applying it."""
        session = self.ctx.session
        image_categories = session.effective_image_categories()
        images, directories = resolve_local(
            session.images,
            session.directories,
            session.sort_option,
            session.sort_direction,
            session.filter_options,
            image_categories,
        )
        key = sort_filter_key(
            session.sort_option,
            session.sort_direction,
            session.filter_options,
            image_categories,
        )
        return images, directories, key
