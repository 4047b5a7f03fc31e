import asyncio

import pytest

from hitoview.core.image_file_ops import DeleteError
from hitoview.core.models import Category, CategoryAssignment, FilterOptions

A, B, C, D = "/pics/a.jpg", "/pics/b.jpg", "/pics/c.jpg", "/pics/d.jpg"


def build(make_ctx, make_image, **kwargs):
    return make_ctx(
        [make_image(n) for n in ("a.jpg", "b.jpg", "c.jpg", "d.jpg")], **kwargs
    )


def test_open_modal_sets_state_and_loads(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    assert asyncio.run(ctx.modal.open_modal(2)) is True
    assert ctx.session.modal_index == 2
    assert ctx.session.modal_path == C
    assert ctx.session.modal_image_data == f"data:{C}"


@pytest.mark.parametrize("index", [-1, 4, 100])
def test_open_modal_rejects_out_of_range(make_ctx, make_image, index):
    ctx = build(make_ctx, make_image)
    assert asyncio.run(ctx.modal.open_modal(index)) is False
    assert ctx.session.modal_index == -1
    assert ctx.session.modal_path == ""


def test_cached_image_is_not_reloaded(make_ctx, make_image, fake_loader):
    loader = fake_loader()
    loader.cache[B] = "cached-b"
    ctx = build(make_ctx, make_image, image_loader=loader)
    asyncio.run(ctx.modal.open_modal(1))
    assert loader.calls == []
    assert ctx.session.modal_image_data == "cached-b"


def test_only_latest_open_commits_image_data(make_ctx, make_image, fake_loader):
    loader = fake_loader()
    ctx = build(make_ctx, make_image, image_loader=loader)
    loaded = []
    ctx.session.modal_image_loaded.connect(loaded.append)

    async def scenario():
        loader.gates[A] = asyncio.Event()
        first = asyncio.create_task(ctx.modal.open_modal(0))
        await asyncio.sleep(0)
        assert ctx.session.modal_index == 0  # optimistic
        second = await ctx.modal.open_modal(3)
        loader.gates[A].set()
        return await first, second

    first, second = asyncio.run(scenario())
    assert first is False
    assert second is True
    assert loaded == [D]
    assert ctx.session.modal_index == 3
    assert ctx.session.modal_path == D
    assert ctx.session.modal_image_data == f"data:{D}"


def test_latest_load_failure_closes_modal(make_ctx, make_image, fake_loader):
    loader = fake_loader()
    loader.failing.add(B)
    ctx = build(make_ctx, make_image, image_loader=loader)
    errors = []
    ctx.session.error_occurred.connect(errors.append)
    assert asyncio.run(ctx.modal.open_modal(1)) is False
    assert ctx.session.modal_index == -1
    assert ctx.session.last_error is not None
    assert len(errors) == 1


def test_next_and_previous_are_bounded(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    asyncio.run(ctx.modal.open_modal(3))
    assert asyncio.run(ctx.modal.show_next()) is False
    assert ctx.session.modal_path == D

    asyncio.run(ctx.modal.show_previous())
    asyncio.run(ctx.modal.show_previous())
    asyncio.run(ctx.modal.show_previous())
    assert ctx.session.modal_path == A
    assert asyncio.run(ctx.modal.show_previous()) is False
    assert ctx.session.modal_index == 0


def test_navigation_without_open_modal_is_a_no_op(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    assert asyncio.run(ctx.modal.show_next()) is False
    assert ctx.session.modal_index == -1


def test_close_modal_clears_state_and_overlay(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    asyncio.run(ctx.modal.open_modal(1))
    ctx.modal.toggle_shortcuts_overlay()
    assert ctx.session.shortcuts_overlay_visible is True

    ctx.modal.close_modal()
    assert ctx.session.modal_index == -1
    assert ctx.session.modal_path == ""
    assert ctx.session.modal_image_data is None
    assert ctx.session.shortcuts_overlay_visible is False


def test_close_modal_refilters_after_suppressed_edit(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    ctx.session.set_filter_options(FilterOptions(category_id="uncategorized"))
    ctx.sort_filter.resolve_now()
    asyncio.run(ctx.modal.open_modal(1))
    asyncio.run(ctx.categories.assign(B, "cat1"))
    assert ctx.session.suppress_refilter is True

    ctx.modal.close_modal()
    assert ctx.session.suppress_refilter is False
    assert B not in [i.path for i in ctx.session.resolved_images]


def test_close_during_load_discards_result(make_ctx, make_image, fake_loader):
    loader = fake_loader()
    ctx = build(make_ctx, make_image, image_loader=loader)

    async def scenario():
        loader.gates[B] = asyncio.Event()
        pending = asyncio.create_task(ctx.modal.open_modal(1))
        await asyncio.sleep(0)
        ctx.modal.close_modal()
        loader.gates[B].set()
        return await pending

    assert asyncio.run(scenario()) is False
    assert ctx.session.modal_index == -1
    assert ctx.session.modal_image_data is None


def test_load_survives_reindex_of_same_image(make_ctx, make_image, fake_loader):
    loader = fake_loader()
    ctx = build(make_ctx, make_image, image_loader=loader)
    keep = (CategoryAssignment("cat1", ""),)
    ctx.session.set_categories([Category("cat1", "Keep", "#22c55e")])
    ctx.session.set_image_categories({p: keep for p in (A, B, C, D)})
    ctx.session.set_filter_options(FilterOptions(category_id="cat1"))
    ctx.sort_filter.resolve_now()

    async def scenario():
        loader.gates[C] = asyncio.Event()
        pending = asyncio.create_task(ctx.modal.open_modal(2))
        await asyncio.sleep(0)
        # A drops out of the filter, so C moves from index 2 to 1
        await ctx.categories.remove(A, "cat1")
        assert ctx.session.modal_index == 1
        loader.gates[C].set()
        return await pending

    assert asyncio.run(scenario()) is True
    assert ctx.session.modal_path == C
    assert ctx.session.modal_index == 1
    assert ctx.session.modal_image_data == f"data:{C}"


def test_reconcile_advances_when_filter_drops_modal_image(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    asyncio.run(ctx.modal.open_modal(1))
    previous = [i.path for i in ctx.session.resolved_images]
    ctx.session.set_filter_options(FilterOptions(name_pattern="c"))
    ctx.sort_filter.resolve_now()

    assert asyncio.run(ctx.modal.reconcile(previous)) is True
    assert ctx.session.modal_path == C
    assert ctx.session.modal_index == 0


def test_reconcile_closes_when_nothing_matches(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    asyncio.run(ctx.modal.open_modal(1))
    previous = [i.path for i in ctx.session.resolved_images]
    ctx.session.set_filter_options(FilterOptions(name_pattern="zzz"))
    ctx.sort_filter.resolve_now()
    asyncio.run(ctx.modal.reconcile(previous))
    assert ctx.session.modal_index == -1


def test_open_modal_by_path(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    assert asyncio.run(ctx.modal.open_modal_by_path(C)) is True
    assert ctx.session.modal_index == 2
    assert asyncio.run(ctx.modal.open_modal_by_path("/pics/missing.jpg")) is False


def test_delete_opens_image_now_at_same_index(make_ctx, make_image, fake_trash):
    trash = fake_trash()
    ctx = build(make_ctx, make_image, trash_service=trash)
    asyncio.run(ctx.modal.open_modal(1))
    ctx.image_loader.cache[B] = "b-data"

    assert asyncio.run(ctx.modal.delete_current_image()) is True
    assert trash.deleted == [B]
    assert B not in ctx.session.image_paths
    assert B not in ctx.image_loader.cache
    assert ctx.session.modal_index == 1
    assert ctx.session.modal_path == C


def test_delete_last_image_moves_to_previous(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    asyncio.run(ctx.modal.open_modal(3))
    asyncio.run(ctx.modal.delete_current_image())
    assert ctx.session.modal_path == C
    assert ctx.session.modal_index == 2


def test_delete_only_image_closes_modal(make_ctx, make_image):
    ctx = make_ctx([make_image("only.jpg")])
    asyncio.run(ctx.modal.open_modal(0))
    asyncio.run(ctx.modal.delete_current_image())
    assert ctx.session.modal_index == -1
    assert ctx.session.images == []


def test_delete_removes_category_entry(make_ctx, make_image):
    ctx = build(make_ctx, make_image)
    asyncio.run(ctx.categories.assign(B, "cat1"))
    asyncio.run(ctx.modal.open_modal(1))
    asyncio.run(ctx.modal.delete_current_image())
    assert B not in ctx.session.image_categories


def test_failed_delete_changes_nothing(make_ctx, make_image, fake_trash):
    ctx = build(make_ctx, make_image, trash_service=fake_trash(fail=True))
    asyncio.run(ctx.categories.assign(B, "cat1"))
    asyncio.run(ctx.modal.open_modal(1))
    images_before = list(ctx.session.images)
    categories_before = ctx.session.image_categories

    with pytest.raises(DeleteError):
        asyncio.run(ctx.modal.delete_current_image())

    assert ctx.session.images == images_before
    assert ctx.session.image_categories is categories_before
    assert ctx.session.modal_path == B
    assert ctx.session.is_deleting is False
    assert "Failed to delete image" in ctx.session.last_error


def test_delete_is_not_reentrant(make_ctx, make_image, fake_trash):
    trash = fake_trash()
    ctx = build(make_ctx, make_image, trash_service=trash)
    asyncio.run(ctx.modal.open_modal(0))

    async def scenario():
        return await asyncio.gather(
            ctx.modal.delete_current_image(), ctx.modal.delete_current_image()
        )

    results = asyncio.run(scenario())
    assert results == [True, False]
    assert trash.deleted == [A]
