from __future__ import annotations
import logging
import os
from typing import Dict, List, Protocol

logger = logging.getLogger(__name__)

# Stands in for an image that could not be loaded
ERROR_PLACEHOLDER = "error"


class PreviewContext(Protocol):
    session: object  # ViewSession
    image_loader: object  # ImageLoader


class PreviewController:
    def __init__(self, ctx: PreviewContext):
        self.ctx = ctx

    async def load_paths(self, paths: List[str]) -> Dict[str, str]:
        """Load image data for each path; a failure only affects its own entry."""
        results: Dict[str, str] = {}
        paths = [p for p in paths if p]
        if not paths:
            return results
        reset_version = self.ctx.session.reset_version
        failures = 0
        for path in paths:
            try:
                results[path] = await self.ctx.image_loader.load(path)
            except Exception as e:
                failures += 1
                logger.warning(f"Failed to load {os.path.basename(path)}: {e}")
                results[path] = ERROR_PLACEHOLDER
            if self.ctx.session.reset_version != reset_version:
                logger.debug("Session reset during page load; stopping")
                break
        if failures:
            logger.info(f"Loaded {len(results) - failures}/{len(results)} images")
        return results
