from __future__ import annotations
import os
from typing import Optional, Tuple

from hitoview.core.models import image_categories_to_entries


def config_location(session) -> Tuple[str, Optional[str]]:
    """(directory, filename) the session's config is stored at.

    An explicit ``config_file_path`` wins; otherwise the default file name
    inside the current directory is used.
    """
    if session.config_file_path:
        return (
            os.path.dirname(session.config_file_path) or session.current_directory,
            os.path.basename(session.config_file_path),
        )
    return session.current_directory, None


async def save_session_config(session, config_store) -> None:
    """Persist categories, live assignments and hotkeys. Errors propagate."""
    directory, filename = config_location(session)
    await config_store.save(
        directory,
        list(session.categories),
        image_categories_to_entries(session.image_categories),
        list(session.hotkeys),
        filename,
    )
