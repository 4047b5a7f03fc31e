import asyncio

import pytest

from hitoview.core.config_store import ConfigStoreError, HitoConfig
from hitoview.core.image_file_ops import DeleteError
from hitoview.core.image_loader import ImageLoadError
from hitoview.core.models import ImageRef
from hitoview.ui.controllers.category_controller import CategoryController
from hitoview.ui.controllers.hotkey_controller import HotkeyController
from hitoview.ui.controllers.modal_controller import ModalController
from hitoview.ui.controllers.pagination_controller import PaginationController
from hitoview.ui.controllers.sort_filter_controller import SortFilterController
from hitoview.ui.view_session import ViewSession


@pytest.fixture(autouse=True)
def default_config_file_name(monkeypatch):
    # Keep tests independent of the user's QSettings
    monkeypatch.setattr(
        "hitoview.core.config_store.get_config_file_name", lambda: ".hito.json"
    )


class FakeConfigStore:
    def __init__(self, config=None, fail_load=False, fail_save=False):
        self.config = config or HitoConfig()
        self.fail_load = fail_load
        self.fail_save = fail_save
        self.saves = []

    async def load(self, directory, filename=None):
        if self.fail_load:
            raise ConfigStoreError("corrupt config")
        return self.config

    async def save(self, directory, categories, image_categories_entries, hotkeys, filename=None):
        self.saves.append(
            {
                "directory": directory,
                "categories": list(categories),
                "image_categories": image_categories_entries,
                "hotkeys": [h.to_dict() for h in hotkeys],
                "filename": filename,
            }
        )
        if self.fail_save:
            raise ConfigStoreError("disk full")


class FakeLoader:
    """In-memory image loader. Paths in ``gates`` wait for their event."""

    def __init__(self):
        self.cache = {}
        self.gates = {}
        self.failing = set()
        self.calls = []

    def get_cached(self, path):
        return self.cache.get(path)

    async def load(self, path):
        self.calls.append(path)
        gate = self.gates.get(path)
        if gate is not None:
            await gate.wait()
        if path in self.failing:
            raise ImageLoadError(f"cannot decode {path}")
        data = f"data:{path}"
        self.cache[path] = data
        return data

    def forget(self, path):
        self.cache.pop(path, None)

    def clear(self):
        self.cache.clear()


class FakeTrash:
    def __init__(self, fail=False):
        self.fail = fail
        self.deleted = []

    async def delete(self, path):
        await asyncio.sleep(0)
        if self.fail:
            raise DeleteError(f"permission denied: {path}")
        self.deleted.append(path)


class SessionCtx:
    """Wires a session and its controllers the way AppController does."""

    def __init__(
        self,
        images=(),
        directories=(),
        sorter=None,
        config_store=None,
        image_loader=None,
        trash_service=None,
        batch_size=30,
    ):
        self.session = ViewSession()
        self.session.reset("/pics")
        self.session.set_contents(list(images), list(directories))
        self.sorter = sorter
        self.config_store = config_store or FakeConfigStore()
        self.image_loader = image_loader or FakeLoader()
        self.trash_service = trash_service or FakeTrash()
        self.sort_filter = SortFilterController(self)
        self.pagination = PaginationController(self, batch_size)
        self.modal = ModalController(self)
        self.categories = CategoryController(self)
        self.hotkeys = HotkeyController(self)
        self.session.resolved_changed.connect(self.pagination.on_resolved_changed)
        self.sort_filter.resolve_now()

    def resolved_names(self):
        return [img.path.rsplit("/", 1)[-1] for img in self.session.resolved_images]


def image(name, size_kb=20, created_at=0.0):
    return ImageRef(path=f"/pics/{name}", size_bytes=size_kb * 1024, created_at=created_at)


@pytest.fixture
def make_image():
    return image


@pytest.fixture
def make_ctx():
    return SessionCtx


@pytest.fixture
def fake_config_store():
    return FakeConfigStore


@pytest.fixture
def fake_loader():
    return FakeLoader


@pytest.fixture
def fake_trash():
    return FakeTrash
