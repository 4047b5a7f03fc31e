"""
Per-directory config persistence.

Categories, image category assignments and hotkeys live in a JSON file
(``.hito.json`` by default) next to the images:

    {
      "categories": [{"id": ..., "name": ..., "color": ...}],
      "image_categories": [[path, [{"category_id": ..., "assigned_at": ...}]]],
      "hotkeys": [{"id": ..., "key": ..., "modifiers": [...], "action": ...}]
    }
"""

from __future__ import annotations
import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from hitoview import HitoviewError
from .app_settings import get_config_file_name
from .models import Category, HotkeyConfig

logger = logging.getLogger(__name__)


class ConfigStoreError(HitoviewError):
    """Raised when a config file cannot be read, parsed or written."""


@dataclass
class HitoConfig:
    categories: List[Category] = field(default_factory=list)
    image_categories_entries: List[List[Any]] = field(default_factory=list)
    hotkeys: List[HotkeyConfig] = field(default_factory=list)


def _parse_categories(raw: Any) -> List[Category]:
    categories = []
    for item in raw or []:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        categories.append(
            Category(
                id=str(item["id"]),
                name=str(item.get("name", "")),
                color=str(item.get("color", "#888888")),
            )
        )
    return categories


def _parse_hotkeys(raw: Any) -> List[HotkeyConfig]:
    hotkeys = []
    for i, item in enumerate(raw or []):
        if not isinstance(item, dict):
            continue
        modifiers = item.get("modifiers")
        hotkeys.append(
            HotkeyConfig(
                id=str(item.get("id") or f"hotkey_{i}"),
                key=str(item.get("key") or ""),
                modifiers=[str(m) for m in modifiers] if isinstance(modifiers, list) else [],
                action=str(item.get("action") or ""),
            )
        )
    return hotkeys


class JsonConfigStore:
    """Reads and writes the per-directory config file.

    Blocking file I/O runs in the default executor so callers can await it
    from the event loop.
    """

    def config_path(self, directory: str, filename: Optional[str] = None) -> str:
        return os.path.join(directory, filename or get_config_file_name())

    async def load(self, directory: str, filename: Optional[str] = None) -> HitoConfig:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.load_sync, directory, filename)

    async def save(
        self,
        directory: str,
        categories: Sequence[Category],
        image_categories_entries: List[List[Any]],
        hotkeys: Sequence[HotkeyConfig],
        filename: Optional[str] = None,
    ) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            self.save_sync,
            directory,
            list(categories),
            image_categories_entries,
            list(hotkeys),
            filename,
        )

    def load_sync(self, directory: str, filename: Optional[str] = None) -> HitoConfig:
        """Load the config; a missing file means "no saved state"."""
        path = self.config_path(directory, filename)
        if not os.path.isfile(path):
            logger.debug(f"No config file at {path}")
            return HitoConfig()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigStoreError(f"Could not read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigStoreError(f"Config {path} is not a JSON object")

        config = HitoConfig(
            categories=_parse_categories(data.get("categories")),
            image_categories_entries=list(data.get("image_categories") or []),
            hotkeys=_parse_hotkeys(data.get("hotkeys")),
        )
        logger.info(
            f"Loaded config {os.path.basename(path)}: "
            f"{len(config.categories)} categories, "
            f"{len(config.image_categories_entries)} categorized images, "
            f"{len(config.hotkeys)} hotkeys"
        )
        return config

    def save_sync(
        self,
        directory: str,
        categories: Sequence[Category],
        image_categories_entries: List[List[Any]],
        hotkeys: Sequence[HotkeyConfig],
        filename: Optional[str] = None,
    ) -> None:
        path = self.config_path(directory, filename)
        payload = {
            "categories": [
                {"id": c.id, "name": c.name, "color": c.color} for c in categories
            ],
            "image_categories": image_categories_entries,
            "hotkeys": [h.to_dict() for h in hotkeys],
        }
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=".hito-", suffix=".tmp", dir=os.path.dirname(path) or "."
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, path)
            tmp_path = None
            logger.debug(f"Saved config to {path}")
        except OSError as e:
            raise ConfigStoreError(f"Could not write config {path}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    logger.warning(f"Could not remove temp file {tmp_path}")
