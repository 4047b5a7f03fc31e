from __future__ import annotations
from typing import Collection, Optional, Sequence

# Navigation helpers used by the modal controller. They are UI-agnostic and
# operate on ordered path lists; the controller maps paths back to indices.


def find_step_target(
    ordered_paths: Sequence[str], current_path: Optional[str], step: int
) -> Optional[int]:
    """Index one step away from current_path, or None at either end.

    No wrap-around. Returns None when current_path is not in the list.
    """
    if not ordered_paths or current_path not in ordered_paths:
        return None
    target = list(ordered_paths).index(current_path) + step
    if 0 <= target < len(ordered_paths):
        return target
    return None


def find_surviving_neighbor(
    previous_paths: Sequence[str],
    current_path: str,
    step: int,
    remaining_paths: Collection[str],
) -> Optional[str]:
    """Pick where to go when current_path has dropped out of the sequence.

    Walks previous_paths from current_path's old position in the direction of
    ``step`` and returns the first path still present in remaining_paths. If
    nothing survives in that direction the nearest survivor the other way is
    used. Returns None when nothing survives at all.

    If current_path was not in previous_paths either, falls back to the first
    (step > 0) or last (step < 0) remaining path in previous order.
    """
    remaining = set(remaining_paths)
    if not remaining:
        return None
    previous = list(previous_paths)
    if current_path not in previous:
        candidates = [p for p in previous if p in remaining]
        if not candidates:
            return None
        return candidates[0] if step > 0 else candidates[-1]

    start = previous.index(current_path)
    direction = 1 if step > 0 else -1
    for dir_ in (direction, -direction):
        idx = start + dir_
        while 0 <= idx < len(previous):
            if previous[idx] in remaining:
                return previous[idx]
            idx += dir_
    return None
