from __future__ import annotations
import logging
import os
import random
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Tuple

from hitoview import HitoviewError
from hitoview.core.app_settings import CATEGORY_COLOR_PALETTE
from hitoview.core.models import UNCATEGORIZED, Category, CategoryAssignment
from hitoview.ui.helpers.persistence_utils import save_session_config

logger = logging.getLogger(__name__)


class CategoryError(HitoviewError):
    """Raised for invalid category edits (empty name, unknown id)."""


class DuplicateCategoryError(CategoryError):
    """Raised when a category name is already taken (case-insensitive)."""


class CategoryContext(Protocol):
    session: object  # ViewSession
    sort_filter: object  # SortFilterController
    modal: object  # ModalController
    config_store: object  # JsonConfigStore


def category_action_variants(category_id: str) -> Tuple[str, ...]:
    """Every hotkey action string that refers to a category id."""
    return (
        f"toggle_category_{category_id}",
        f"toggle_category_next_{category_id}",
        f"assign_category_{category_id}",
        f"assign_category_{category_id}_image",
    )


def _without_category(image_categories, category_id: str):
    """Copy of the map with one category stripped; emptied entries are dropped."""
    result = {}
    for path, assignments in image_categories.items():
        remaining = tuple(a for a in assignments if a.category_id != category_id)
        if remaining:
            result[path] = remaining
    return result


def _now_iso() -> str:
    return (
        datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    )


class CategoryController:
    """
    Assigns categories to images and keeps the open viewer stable while doing so.

    When the image shown in the modal is edited while a category filter is
    active, the resolver is switched onto a snapshot of the pre-edit
    assignments (refilter suppression) so the image does not vanish from the
    filtered set under the user. Only the modal controller ends suppression.
    """

    def __init__(self, ctx: CategoryContext):
        self.ctx = ctx

    # --- Assignment ---
    async def assign(self, path: str, category_id: str) -> bool:
        current = self.ctx.session.assignments_for(path)
        if any(a.category_id == category_id for a in current):
            return False
        updated = current + (CategoryAssignment(category_id, _now_iso()),)
        return await self._apply(path, updated)

    async def remove(self, path: str, category_id: str) -> bool:
        current = self.ctx.session.assignments_for(path)
        updated = tuple(a for a in current if a.category_id != category_id)
        if len(updated) == len(current):
            return False
        return await self._apply(path, updated)

    async def toggle(self, path: str, category_id: str) -> bool:
        current = self.ctx.session.assignments_for(path)
        if any(a.category_id == category_id for a in current):
            return await self.remove(path, category_id)
        return await self.assign(path, category_id)

    async def assign_to_modal(self, category_id: str) -> bool:
        path = self._modal_path()
        if path is None:
            return False
        return await self.assign(path, category_id)

    async def toggle_on_modal(self, category_id: str) -> bool:
        path = self._modal_path()
        if path is None:
            return False
        return await self.toggle(path, category_id)

    def category_counts(self) -> Dict[str, int]:
        """Number of images per category id, plus the uncategorized count."""
        session = self.ctx.session
        counts = {c.id: 0 for c in session.categories}
        for assignments in session.image_categories.values():
            for a in assignments:
                if a.category_id in counts:
                    counts[a.category_id] += 1
        counts[UNCATEGORIZED] = sum(
            1 for img in session.images if not session.image_categories.get(img.path)
        )
        return counts

    # --- Category list ---
    async def add_category(self, name: str, color: Optional[str] = None) -> Category:
        session = self.ctx.session
        name = self._validated_name(name)
        existing_ids = {c.id for c in session.categories}
        stamp = int(time.time() * 1000)
        while f"category_{stamp}" in existing_ids:
            stamp += 1
        category = Category(
            id=f"category_{stamp}",
            name=name,
            color=color or random.choice(CATEGORY_COLOR_PALETTE),
        )
        session.set_categories(session.categories + [category])
        logger.info(f"Added category '{name}' ({category.id})")
        await save_session_config(session, self.ctx.config_store)
        return category

    async def update_category(self, category_id: str, name: str, color: str) -> Category:
        session = self.ctx.session
        if session.get_category(category_id) is None:
            raise CategoryError(f"Unknown category: {category_id}")
        name = self._validated_name(name, exclude_id=category_id)
        updated = Category(id=category_id, name=name, color=color)
        session.set_categories(
            [updated if c.id == category_id else c for c in session.categories]
        )
        await save_session_config(session, self.ctx.config_store)
        return updated

    async def delete_category(self, category_id: str) -> bool:
        """Remove a category, its assignments and any hotkey actions naming it.

        Hotkeys are kept with an empty action so the binding itself survives.
        """
        session = self.ctx.session
        if session.get_category(category_id) is None:
            logger.warning(f"delete_category: unknown category {category_id}")
            return False

        stripped = _without_category(session.image_categories, category_id)

        variants = set(category_action_variants(category_id))
        hotkeys = []
        for hotkey in session.hotkeys:
            if hotkey.action in variants:
                logger.debug(f"Clearing action of hotkey {hotkey.id} ({hotkey.action})")
                hotkey = replace(hotkey, modifiers=list(hotkey.modifiers), action="")
            hotkeys.append(hotkey)

        session.set_categories([c for c in session.categories if c.id != category_id])
        session.set_image_categories(stripped)
        session.set_hotkeys(hotkeys)
        if session.cached_categories_snapshot is not None:
            session.cached_categories_snapshot = _without_category(
                session.cached_categories_snapshot, category_id
            )
        if session.filter_options.category_id == category_id:
            session.set_filter_options(session.filter_options.with_category(None))

        previous_paths = [img.path for img in session.resolved_images]
        self.ctx.sort_filter.resolve_now()
        if not session.suppress_refilter:
            await self.ctx.modal.reconcile(previous_paths)
        logger.info(f"Deleted category {category_id}")
        await save_session_config(session, self.ctx.config_store)
        return True

    # --- Internal helpers ---
    def _modal_path(self) -> Optional[str]:
        session = self.ctx.session
        if not session.is_modal_open or not session.modal_path:
            logger.debug("No image open in the viewer; ignoring category action")
            return None
        return session.modal_path

    def _validated_name(self, name: str, exclude_id: Optional[str] = None) -> str:
        name = (name or "").strip()
        if not name:
            raise CategoryError("Category name cannot be empty")
        lowered = name.casefold()
        for category in self.ctx.session.categories:
            if category.id != exclude_id and category.name.strip().casefold() == lowered:
                raise DuplicateCategoryError(
                    f'A category with the name "{name}" already exists.'
                )
        return name

    async def _apply(self, path: str, assignments: Tuple[CategoryAssignment, ...]) -> bool:
        """Commit a changed assignment tuple for one path, then save once."""
        session = self.ctx.session
        if path not in session.image_paths:
            logger.warning(f"Cannot categorize unknown image {path}")
            return False

        updated = dict(session.image_categories)
        if assignments:
            updated[path] = assignments
        else:
            updated.pop(path, None)

        is_modal_image = session.is_modal_open and path == session.modal_path
        previous_paths = [img.path for img in session.resolved_images]

        if is_modal_image and session.filter_options.has_category_filter:
            # Snapshot is taken from the pre-edit assignments
            session.begin_refilter_suppression()
            session.set_image_categories(updated)
            self.ctx.sort_filter.resolve_now()
        else:
            session.set_image_categories(updated)
            self.ctx.sort_filter.resolve_now()
            if session.is_modal_open and not session.suppress_refilter:
                await self.ctx.modal.reconcile(previous_paths)

        logger.debug(
            f"Categories of {os.path.basename(path)}: "
            f"{[a.category_id for a in assignments] or 'none'}"
        )
        await save_session_config(session, self.ctx.config_store)
        return True
