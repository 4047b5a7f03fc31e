from __future__ import annotations
import asyncio
import logging
from typing import List, Optional, Protocol

from hitoview.core.app_settings import DEFAULT_BATCH_SIZE
from hitoview.core.models import ImageRef

logger = logging.getLogger(__name__)


class PaginationContext(Protocol):
    session: object  # ViewSession


class PaginationController:
    """Maintains how much of the resolved image sequence is on the page.

    ``on_resolved_changed`` must be connected to the session's
    ``resolved_changed`` signal; it runs synchronously inside the emit, so the
    count is already consistent when any other consumer reads it.
    """

    def __init__(self, ctx: PaginationContext, batch_size: int = DEFAULT_BATCH_SIZE):
        self.ctx = ctx
        self.batch_size = batch_size if batch_size > 0 else DEFAULT_BATCH_SIZE
        self.visible_count = 0
        self.is_extending = False
        self._last_key: Optional[str] = None

    # --- Signal handlers ---
    def on_resolved_changed(self, sort_filter_key: str, length: int) -> None:
        if length <= 0:
            self.visible_count = 0
        elif sort_filter_key != self._last_key or self.visible_count == 0:
            self.visible_count = min(self.batch_size, length)
        else:
            self.visible_count = min(self.visible_count, length)
        self._last_key = sort_filter_key

    # --- Public API ---
    @property
    def total(self) -> int:
        return len(self.ctx.session.resolved_images)

    def has_more(self) -> bool:
        return self.visible_count < self.total

    def current_page(self) -> List[ImageRef]:
        return list(self.ctx.session.resolved_images[: self.visible_count])

    async def extend_page(self) -> bool:
        """Handle a near-end-of-page signal.

        Adds one batch unless an extension is already in flight or everything
        is visible. Signals arriving while extending are dropped, not queued.
        """
        if self.is_extending or not self.has_more():
            return False
        self.is_extending = True
        try:
            before = self.visible_count
            self.visible_count = min(self.visible_count + self.batch_size, self.total)
            logger.debug(f"Extended page {before} -> {self.visible_count}")
            # Let consumers render the new batch before accepting another signal
            await asyncio.sleep(0)
        finally:
            self.is_extending = False
        return True
