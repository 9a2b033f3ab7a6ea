"""Utility functions for filter_sync."""
import math
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Union

Number = Union[int, float]


def split_values(raw: Optional[str]) -> List[str]:
    """Split a comma-joined parameter into trimmed, non-empty, de-duplicated values."""
    if not raw:
        return []
    seen = set()
    uniq: List[str] = []
    for part in raw.split(","):
        v = part.strip()
        if v and v not in seen:
            seen.add(v)
            uniq.append(v)
    return uniq


def parse_number(raw: Optional[str]) -> Optional[Number]:
    """Parse a finite number, returning ints for integral values and None when malformed."""
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value) if value.is_integer() else value


def parse_positive_int(raw: Optional[str], default: int) -> int:
    """Parse a positive integer, falling back to default for anything else."""
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value >= 1 else default


def format_number(value: Number) -> str:
    """Render a number the way it should appear in a query string (100, not 100.0)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def serialize_criteria(criteria: Any) -> Dict[str, Any]:
    """Convert FilterCriteria to a JSON-serializable dict with the wire field names."""
    return {
        "sort": criteria.sort,
        "price": {"min": criteria.price.min, "max": criteria.price.max},
        "categoryIds": sorted(criteria.category_ids),
        "attributes": {k: sorted(v) for k, v in sorted(criteria.attributes.items())},
        "search": criteria.search,
        "page": criteria.page,
        "pageSize": criteria.page_size,
    }


def serialize_meta(meta: Any) -> Dict[str, Any]:
    """Convert ResultMeta to the camelCase dict the data layer speaks."""
    data = asdict(meta)
    return {
        "total": data["total"],
        "filtered": data["filtered"],
        "page": data["page"],
        "pageSize": data["page_size"],
        "totalPages": data["total_pages"],
        "hasNext": data["has_next"],
        "hasPrev": data["has_prev"],
    }
