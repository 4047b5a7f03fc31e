from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

# Category filter value selecting images with no assignment at all
UNCATEGORIZED = "uncategorized"


class SortOption(Enum):
    NAME = "name"
    DATE_CREATED = "dateCreated"
    SIZE = "size"
    LAST_CATEGORIZED = "lastCategorized"

    @classmethod
    def from_string(cls, value: str) -> "SortOption":
        """Convert string to SortOption, defaulting to NAME."""
        try:
            return cls(value)
        except ValueError:
            return cls.NAME


class SortDirection(Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"

    @classmethod
    def from_string(cls, value: str) -> "SortDirection":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.ASCENDING


class NameOperator(Enum):
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    EQUALS = "equals"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "NameOperator":
        if value == "exact":  # legacy config value
            return cls.EQUALS
        try:
            return cls(value)
        except ValueError:
            return cls.CONTAINS


class SizeOperator(Enum):
    LARGER_THAN = "largerThan"
    SMALLER_THAN = "smallerThan"
    BETWEEN = "between"
    EQUALS = "equals"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "SizeOperator":
        if value == "lessThan":  # legacy config value
            return cls.SMALLER_THAN
        try:
            return cls(value)
        except ValueError:
            return cls.LARGER_THAN


@dataclass(frozen=True)
class ImageRef:
    path: str
    size_bytes: Optional[int] = None
    created_at: Optional[float] = None  # seconds since epoch


@dataclass(frozen=True)
class DirectoryRef:
    path: str


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    color: str


@dataclass(frozen=True)
class CategoryAssignment:
    category_id: str
    assigned_at: str  # ISO-8601 timestamp

    def to_dict(self) -> Dict[str, str]:
        return {"category_id": self.category_id, "assigned_at": self.assigned_at}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CategoryAssignment":
        return cls(
            category_id=str(data.get("category_id", "")),
            assigned_at=str(data.get("assigned_at", "")),
        )


# path -> assignments in chronological order. Treated as immutable: every
# mutation builds a new dict (and new tuples) instead of editing in place.
ImageCategories = Dict[str, Tuple[CategoryAssignment, ...]]


@dataclass
class HotkeyConfig:
    id: str
    key: str
    modifiers: List[str] = field(default_factory=list)
    action: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "modifiers": list(self.modifiers),
            "action": self.action,
        }


@dataclass(frozen=True)
class FilterOptions:
    category_id: Optional[str] = None
    name_pattern: Optional[str] = None
    name_operator: NameOperator = NameOperator.CONTAINS
    size_operator: Optional[SizeOperator] = None
    size_value: Optional[str] = None  # kilobytes, as typed by the user
    size_value2: Optional[str] = None  # upper/lower bound for BETWEEN

    @property
    def has_category_filter(self) -> bool:
        return bool(self.category_id)

    @property
    def has_name_filter(self) -> bool:
        return bool(self.name_pattern)

    @property
    def has_size_filter(self) -> bool:
        return bool(self.size_value and str(self.size_value).strip())

    def is_active(self) -> bool:
        return self.has_category_filter or self.has_name_filter or self.has_size_filter

    def with_category(self, category_id: Optional[str]) -> "FilterOptions":
        return replace(self, category_id=category_id)

    def to_wire(self) -> Optional[Dict[str, Any]]:
        """Snake-case dict handed to an external sorter, or None when no filter is set."""
        if not self.is_active():
            return None
        size_op = self.size_operator or SizeOperator.LARGER_THAN
        return {
            "category_id": self.category_id if self.has_category_filter else None,
            "name_pattern": self.name_pattern if self.has_name_filter else None,
            "name_operator": self.name_operator.value if self.has_name_filter else None,
            "size_operator": size_op.value if self.has_size_filter else None,
            "size_value": self.size_value if self.has_size_filter else None,
            "size_value2": (
                self.size_value2
                if self.has_size_filter and size_op is SizeOperator.BETWEEN
                else None
            ),
        }

    @classmethod
    def from_wire(cls, data: Optional[Mapping[str, Any]]) -> "FilterOptions":
        if not data:
            return cls()
        size_op = data.get("size_operator")
        return cls(
            category_id=data.get("category_id") or None,
            name_pattern=data.get("name_pattern") or None,
            name_operator=NameOperator.from_string(data.get("name_operator")),
            size_operator=SizeOperator.from_string(size_op) if size_op else None,
            size_value=data.get("size_value"),
            size_value2=data.get("size_value2"),
        )


def image_categories_to_entries(
    image_categories: Mapping[str, Tuple[CategoryAssignment, ...]],
) -> List[List[Any]]:
    """Serialize to ``[[path, [assignment, ...]], ...]`` sorted by path."""
    return [
        [path, [a.to_dict() for a in image_categories[path]]]
        for path in sorted(image_categories)
    ]


def image_categories_from_entries(entries: Any) -> ImageCategories:
    """Parse the entries format back into an ImageCategories mapping.

    Older config files store plain category id strings instead of assignment
    objects; those get an empty timestamp. Duplicate ids are collapsed,
    keeping the first occurrence.
    """
    result: ImageCategories = {}
    for entry in entries or []:
        if not isinstance(entry, (list, tuple)) or len(entry) != 2:
            continue
        path, raw_assignments = entry
        assignments: List[CategoryAssignment] = []
        seen = set()
        for raw in raw_assignments or []:
            if isinstance(raw, str):
                assignment = CategoryAssignment(category_id=raw, assigned_at="")
            elif isinstance(raw, Mapping):
                assignment = CategoryAssignment.from_dict(raw)
            else:
                continue
            if not assignment.category_id or assignment.category_id in seen:
                continue
            seen.add(assignment.category_id)
            assignments.append(assignment)
        if assignments:
            result[str(path)] = tuple(assignments)
    return result
