"""
Canonical sort/filter definitions.

Every ordering the application produces, whether computed in-process or by an
external sorter, goes through the comparator defined here. Keeping one
definition is what makes the external and local paths produce identical
sequences for the same inputs.

Ordering rules:
  * primary key per SortOption, reversed for DESCENDING
  * ties always broken by ascending path (plain code-point comparison), so
    the result is a total order independent of input order
  * names compare case-insensitively (casefold) with the raw name as a
    secondary key; no locale collation is involved
"""

from __future__ import annotations
import hashlib
import json
from datetime import datetime
from functools import cmp_to_key
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from .models import (
    UNCATEGORIZED,
    CategoryAssignment,
    DirectoryRef,
    FilterOptions,
    ImageRef,
    NameOperator,
    SizeOperator,
    SortDirection,
    SortOption,
    image_categories_to_entries,
)


CategoryLookup = Mapping[str, Tuple[CategoryAssignment, ...]]


def file_name(path: str) -> str:
    """Filename portion of a path, accepting both / and \\ separators."""
    return path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


def parse_size_kb(value) -> Optional[int]:
    """Parse a kilobyte value typed by the user into bytes.

    Returns None for empty, non-numeric or negative input, which disables the
    size filter.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    if parsed < 0 or parsed != parsed:  # negative or NaN
        return None
    return int(parsed * 1024)


def parse_timestamp(value: Optional[str]) -> float:
    """ISO-8601 string to epoch seconds; 0.0 when missing or unparseable."""
    if not value:
        return 0.0
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).timestamp()
    except ValueError:
        return 0.0


def latest_assignment_time(path: str, image_categories: CategoryLookup) -> float:
    assignments = image_categories.get(path) or ()
    times = [parse_timestamp(a.assigned_at) for a in assignments]
    return max(times) if times else 0.0


# --- Comparators ---


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _name_key(path: str) -> Tuple[str, str]:
    name = file_name(path)
    return (name.casefold(), name)


def _primary_key_func(
    sort_option: SortOption, image_categories: CategoryLookup
) -> Callable[[ImageRef], object]:
    if sort_option is SortOption.SIZE:
        return lambda img: img.size_bytes or 0
    if sort_option is SortOption.DATE_CREATED:
        return lambda img: img.created_at or 0.0
    if sort_option is SortOption.LAST_CATEGORIZED:
        return lambda img: latest_assignment_time(img.path, image_categories)
    return lambda img: _name_key(img.path)


def make_image_comparator(
    sort_option: SortOption,
    sort_direction: SortDirection,
    image_categories: CategoryLookup,
) -> Callable[[ImageRef, ImageRef], int]:
    key = _primary_key_func(sort_option, image_categories)
    sign = -1 if sort_direction is SortDirection.DESCENDING else 1

    def compare(a: ImageRef, b: ImageRef) -> int:
        result = sign * _cmp(key(a), key(b))
        if result:
            return result
        return _cmp(a.path, b.path)

    return compare


def sort_images(
    images: Sequence[ImageRef],
    sort_option: SortOption,
    sort_direction: SortDirection,
    image_categories: CategoryLookup,
) -> List[ImageRef]:
    comparator = make_image_comparator(sort_option, sort_direction, image_categories)
    return sorted(images, key=cmp_to_key(comparator))


def sort_directories(
    directories: Sequence[DirectoryRef],
    sort_option: SortOption,
    sort_direction: SortDirection,
) -> List[DirectoryRef]:
    """Directories only carry a path, so only the name key applies to them."""
    if sort_option is not SortOption.NAME:
        return sorted(directories, key=lambda d: d.path)
    sign = -1 if sort_direction is SortDirection.DESCENDING else 1

    def compare(a: DirectoryRef, b: DirectoryRef) -> int:
        result = sign * _cmp(_name_key(a.path), _name_key(b.path))
        return result or _cmp(a.path, b.path)

    return sorted(directories, key=cmp_to_key(compare))


# --- Filters ---


def _matches_category(
    path: str, category_id: str, image_categories: CategoryLookup
) -> bool:
    assignments = image_categories.get(path) or ()
    if category_id == UNCATEGORIZED:
        return len(assignments) == 0
    return any(a.category_id == category_id for a in assignments)


def _matches_name(path: str, pattern: str, operator: NameOperator) -> bool:
    name = file_name(path).lower()
    pattern = pattern.lower()
    if operator is NameOperator.STARTS_WITH:
        return name.startswith(pattern)
    if operator is NameOperator.ENDS_WITH:
        return name.endswith(pattern)
    if operator is NameOperator.EQUALS:
        return name == pattern
    return pattern in name


def make_size_predicate(
    filter_options: FilterOptions,
) -> Optional[Callable[[ImageRef], bool]]:
    """Build the size predicate, or None when the size filter is inactive.

    Images without size metadata never pass an active size filter.
    """
    bound = parse_size_kb(filter_options.size_value)
    if bound is None:
        return None
    operator = filter_options.size_operator or SizeOperator.LARGER_THAN

    if operator is SizeOperator.BETWEEN:
        bound2 = parse_size_kb(filter_options.size_value2)
        if bound2 is None:
            return None
        low, high = min(bound, bound2), max(bound, bound2)
        return lambda img: img.size_bytes is not None and low <= img.size_bytes <= high
    if operator is SizeOperator.SMALLER_THAN:
        return lambda img: img.size_bytes is not None and img.size_bytes < bound
    if operator is SizeOperator.EQUALS:
        return lambda img: img.size_bytes is not None and img.size_bytes == bound
    return lambda img: img.size_bytes is not None and img.size_bytes > bound


def filter_images(
    images: Sequence[ImageRef],
    filter_options: FilterOptions,
    image_categories: CategoryLookup,
) -> List[ImageRef]:
    result = list(images)
    if filter_options.has_category_filter:
        category_id = filter_options.category_id
        result = [
            img
            for img in result
            if _matches_category(img.path, category_id, image_categories)
        ]
    if filter_options.has_name_filter:
        pattern = filter_options.name_pattern
        operator = filter_options.name_operator
        result = [img for img in result if _matches_name(img.path, pattern, operator)]
    size_predicate = make_size_predicate(filter_options)
    if size_predicate is not None:
        result = [img for img in result if size_predicate(img)]
    return result


def resolve_local(
    images: Sequence[ImageRef],
    directories: Sequence[DirectoryRef],
    sort_option: SortOption,
    sort_direction: SortDirection,
    filter_options: FilterOptions,
    image_categories: CategoryLookup,
) -> Tuple[List[ImageRef], List[DirectoryRef]]:
    """In-process resolve: filter, then sort images; sort directories."""
    filtered = filter_images(images, filter_options, image_categories)
    ordered = sort_images(filtered, sort_option, sort_direction, image_categories)
    return ordered, sort_directories(directories, sort_option, sort_direction)


def sort_filter_key(
    sort_option: SortOption,
    sort_direction: SortDirection,
    filter_options: FilterOptions,
    image_categories: CategoryLookup,
) -> str:
    """Deterministic cache key for the inputs that decide the resolved order.

    Category entries are serialized sorted by path so dict iteration order
    never leaks into the key.
    """
    payload = [
        sort_option.value,
        sort_direction.value,
        filter_options.to_wire(),
        image_categories_to_entries(image_categories),
    ]
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha1(encoded.encode("utf-8")).hexdigest()
