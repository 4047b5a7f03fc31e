import asyncio

import pytest

from hitoview.core.config_store import ConfigStoreError
from hitoview.core.models import (
    UNCATEGORIZED,
    Category,
    CategoryAssignment,
    FilterOptions,
    HotkeyConfig,
)
from hitoview.ui.controllers.category_controller import (
    CategoryError,
    DuplicateCategoryError,
)

A, B, C = "/pics/a.jpg", "/pics/b.jpg", "/pics/c.jpg"


def build(make_ctx, make_image, fake_config_store, **store_kwargs):
    store = fake_config_store(**store_kwargs)
    ctx = make_ctx(
        [make_image("a.jpg"), make_image("b.jpg"), make_image("c.jpg")],
        config_store=store,
    )
    ctx.session.set_categories(
        [Category("cat1", "Keep", "#22c55e"), Category("cat2", "Reject", "#ef4444")]
    )
    return ctx, store


def ids(ctx, path):
    return [a.category_id for a in ctx.session.assignments_for(path)]


def test_assign_new_category_saves_once(make_ctx, make_image, fake_config_store):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    assert asyncio.run(ctx.categories.assign(A, "cat1")) is True
    assert ids(ctx, A) == ["cat1"]
    assert len(store.saves) == 1
    assert store.saves[0]["image_categories"][0][0] == A
    assert store.saves[0]["image_categories"][0][1][0]["assigned_at"].endswith("Z")


def test_assign_existing_category_is_a_no_op(make_ctx, make_image, fake_config_store):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    asyncio.run(ctx.categories.assign(A, "cat1"))
    before = ctx.session.image_categories
    assert asyncio.run(ctx.categories.assign(A, "cat1")) is False
    assert ctx.session.image_categories is before
    assert len(store.saves) == 1


def test_remove_absent_category_does_not_save(make_ctx, make_image, fake_config_store):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    assert asyncio.run(ctx.categories.remove(A, "cat1")) is False
    assert store.saves == []


def test_toggle_twice_restores_original(make_ctx, make_image, fake_config_store):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    asyncio.run(ctx.categories.assign(A, "cat2"))
    asyncio.run(ctx.categories.toggle(A, "cat1"))
    assert ids(ctx, A) == ["cat2", "cat1"]
    asyncio.run(ctx.categories.toggle(A, "cat1"))
    assert ids(ctx, A) == ["cat2"]
    assert len(store.saves) == 3


def test_removing_last_category_drops_entry(make_ctx, make_image, fake_config_store):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    asyncio.run(ctx.categories.toggle(A, "cat1"))
    asyncio.run(ctx.categories.toggle(A, "cat1"))
    assert A not in ctx.session.image_categories


def test_mutation_is_copy_on_write(make_ctx, make_image, fake_config_store):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    asyncio.run(ctx.categories.assign(A, "cat1"))
    before = ctx.session.image_categories
    before_a = before[A]
    asyncio.run(ctx.categories.assign(A, "cat2"))
    assert ctx.session.image_categories is not before
    assert [a.category_id for a in before_a] == ["cat1"]
    assert [a.category_id for a in before[A]] == ["cat1"]


def test_unknown_path_is_ignored(make_ctx, make_image, fake_config_store):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    assert asyncio.run(ctx.categories.assign("/elsewhere/x.jpg", "cat1")) is False
    assert store.saves == []


def test_save_failure_propagates_without_rollback(make_ctx, make_image, fake_config_store):
    ctx, store = build(make_ctx, make_image, fake_config_store, fail_save=True)
    with pytest.raises(ConfigStoreError):
        asyncio.run(ctx.categories.assign(A, "cat1"))
    assert ids(ctx, A) == ["cat1"]


def test_modal_edit_under_uncategorized_filter_is_deferred(
    make_ctx, make_image, fake_config_store
):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    ctx.session.set_filter_options(FilterOptions(category_id=UNCATEGORIZED))
    ctx.sort_filter.resolve_now()
    asyncio.run(ctx.modal.open_modal_by_path(B))
    assert ctx.session.modal_path == B

    asyncio.run(ctx.categories.assign_to_modal("cat1"))

    assert ctx.session.modal_path == B
    assert ctx.session.suppress_refilter is True
    snapshot = ctx.session.cached_categories_snapshot
    assert snapshot is not None
    assert snapshot.get(B, ()) == ()
    assert ids(ctx, B) == ["cat1"]
    # The resolver keeps using the snapshot, so B is still listed
    assert B in [i.path for i in ctx.session.resolved_images]
    assert len(store.saves) == 1


def test_snapshot_depth_is_one(make_ctx, make_image, fake_config_store):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    ctx.session.set_filter_options(FilterOptions(category_id=UNCATEGORIZED))
    ctx.sort_filter.resolve_now()
    asyncio.run(ctx.modal.open_modal_by_path(B))

    asyncio.run(ctx.categories.toggle_on_modal("cat1"))
    first_snapshot = ctx.session.cached_categories_snapshot
    asyncio.run(ctx.categories.toggle_on_modal("cat2"))
    assert ctx.session.cached_categories_snapshot is first_snapshot
    assert B not in first_snapshot
    assert ids(ctx, B) == ["cat1", "cat2"]


def test_navigation_clears_suppression(make_ctx, make_image, fake_config_store):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    ctx.session.set_filter_options(FilterOptions(category_id=UNCATEGORIZED))
    ctx.sort_filter.resolve_now()
    asyncio.run(ctx.modal.open_modal_by_path(B))
    asyncio.run(ctx.categories.assign_to_modal("cat1"))

    asyncio.run(ctx.modal.show_next())

    assert ctx.session.suppress_refilter is False
    assert ctx.session.cached_categories_snapshot is None
    # B left the uncategorized set; the viewer moved on to the image after it
    assert [i.path for i in ctx.session.resolved_images] == [A, C]
    assert ctx.session.modal_path == C
    assert ctx.session.modal_index == 1


def test_previous_after_suppressed_edit_goes_backwards(
    make_ctx, make_image, fake_config_store
):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    ctx.session.set_filter_options(FilterOptions(category_id=UNCATEGORIZED))
    ctx.sort_filter.resolve_now()
    asyncio.run(ctx.modal.open_modal_by_path(B))
    asyncio.run(ctx.categories.assign_to_modal("cat1"))

    asyncio.run(ctx.modal.show_previous())
    assert ctx.session.suppress_refilter is False
    assert ctx.session.modal_path == A


def test_modal_edit_without_category_filter_does_not_suppress(
    make_ctx, make_image, fake_config_store
):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    asyncio.run(ctx.modal.open_modal(1))
    asyncio.run(ctx.categories.toggle_on_modal("cat1"))
    assert ctx.session.suppress_refilter is False
    assert ctx.session.cached_categories_snapshot is None
    assert ctx.session.modal_path == B


def test_non_modal_edit_resyncs_viewer_index(
    make_ctx, make_image, fake_config_store
):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    for path in (A, B, C):
        asyncio.run(ctx.categories.assign(path, "cat1"))
    ctx.session.set_filter_options(FilterOptions(category_id="cat1"))
    ctx.sort_filter.resolve_now()
    asyncio.run(ctx.modal.open_modal_by_path(B))

    assert ctx.session.modal_index == 1
    asyncio.run(ctx.categories.remove(A, "cat1"))
    assert ctx.session.modal_path == B
    assert ctx.session.modal_index == 0  # re-synced after A dropped out


def test_modal_without_image_ignores_modal_variants(make_ctx, make_image, fake_config_store):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    assert asyncio.run(ctx.categories.assign_to_modal("cat1")) is False
    assert asyncio.run(ctx.categories.toggle_on_modal("cat1")) is False
    assert store.saves == []


def test_delete_category_strips_assignments_and_scrubs_hotkeys(
    make_ctx, make_image, fake_config_store
):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    asyncio.run(ctx.categories.assign(A, "cat1"))
    asyncio.run(ctx.categories.assign(B, "cat1"))
    asyncio.run(ctx.categories.assign(B, "cat2"))
    ctx.session.set_hotkeys(
        [
            HotkeyConfig("h1", "1", [], "toggle_category_cat1"),
            HotkeyConfig("h2", "2", [], "toggle_category_next_cat1"),
            HotkeyConfig("h3", "3", [], "assign_category_cat1"),
            HotkeyConfig("h4", "4", [], "assign_category_cat1_image"),
            HotkeyConfig("h5", "5", [], "toggle_category_cat2"),
            HotkeyConfig("h6", "L", [], "next_image"),
        ]
    )
    saves_before = len(store.saves)

    assert asyncio.run(ctx.categories.delete_category("cat1")) is True

    assert [c.id for c in ctx.session.categories] == ["cat2"]
    assert A not in ctx.session.image_categories
    assert ids(ctx, B) == ["cat2"]
    actions = {h.id: h.action for h in ctx.session.hotkeys}
    assert actions == {
        "h1": "",
        "h2": "",
        "h3": "",
        "h4": "",
        "h5": "toggle_category_cat2",
        "h6": "next_image",
    }
    assert len(ctx.session.hotkeys) == 6
    assert len(store.saves) == saves_before + 1


def test_delete_category_clears_matching_filter(make_ctx, make_image, fake_config_store):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    ctx.session.set_filter_options(FilterOptions(category_id="cat1"))
    asyncio.run(ctx.categories.delete_category("cat1"))
    assert ctx.session.filter_options.category_id is None
    assert len(ctx.session.resolved_images) == 3


def test_delete_unknown_category(make_ctx, make_image, fake_config_store):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    assert asyncio.run(ctx.categories.delete_category("nope")) is False
    assert store.saves == []


def test_add_and_update_category(make_ctx, make_image, fake_config_store):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    added = asyncio.run(ctx.categories.add_category("  Maybe ", "#123456"))
    assert added.name == "Maybe"
    assert added.id.startswith("category_")
    assert ctx.session.categories[-1] == added

    updated = asyncio.run(ctx.categories.update_category(added.id, "Perhaps", "#654321"))
    assert ctx.session.get_category(added.id) == updated
    assert len(store.saves) == 2


def test_add_category_picks_palette_color(make_ctx, make_image, fake_config_store):
    from hitoview.core.app_settings import CATEGORY_COLOR_PALETTE

    ctx, _ = build(make_ctx, make_image, fake_config_store)
    added = asyncio.run(ctx.categories.add_category("Fresh"))
    assert added.color in CATEGORY_COLOR_PALETTE


@pytest.mark.parametrize("name", ["keep", "KEEP", " Keep "])
def test_duplicate_category_names_rejected(make_ctx, make_image, fake_config_store, name):
    ctx, store = build(make_ctx, make_image, fake_config_store)
    with pytest.raises(DuplicateCategoryError):
        asyncio.run(ctx.categories.add_category(name))
    assert store.saves == []


def test_update_may_keep_own_name_but_not_take_another(
    make_ctx, make_image, fake_config_store
):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    asyncio.run(ctx.categories.update_category("cat1", "keep", "#000000"))
    with pytest.raises(DuplicateCategoryError):
        asyncio.run(ctx.categories.update_category("cat1", "Reject", "#000000"))
    with pytest.raises(CategoryError):
        asyncio.run(ctx.categories.update_category("missing", "X", "#000000"))
    with pytest.raises(CategoryError):
        asyncio.run(ctx.categories.add_category("   "))


def test_category_counts(make_ctx, make_image, fake_config_store):
    ctx, _ = build(make_ctx, make_image, fake_config_store)
    ctx.session.set_image_categories(
        {
            A: (CategoryAssignment("cat1", ""), CategoryAssignment("cat2", "")),
            B: (CategoryAssignment("cat1", ""),),
        }
    )
    assert ctx.categories.category_counts() == {"cat1": 2, "cat2": 1, UNCATEGORIZED: 1}
