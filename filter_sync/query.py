"""Query string encoding and decoding for filter criteria.

QueryCanonicalizer.encode turns criteria into one stable query string no
matter how the criteria were built. parse_query reads any query string back
into criteria and never raises.

Grammar (all optional, canonical order on output):
    sort, priceMin, priceMax, categoryIds, <attribute keys...>, page, pageSize
plus the input-only ``category`` (a category name, resolved through the
category tree when one is loaded).
"""

from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import parse_qsl, quote

from .config import DEFAULT_PAGE_SIZE, DEFAULT_SORT, RESERVED_PARAMS, SORT_KEYS
from .hierarchy import CategoryHierarchy
from .logger import get_logger
from .models import FilterCriteria, PriceRange
from .utils import format_number, parse_number, parse_positive_int, split_values

logger = get_logger("query")


def make_stable_key(criteria: FilterCriteria) -> Tuple[Any, ...]:
    """Sorted projection of the fields that take part in serialization."""
    return (
        criteria.sort,
        criteria.price.min,
        criteria.price.max,
        tuple(sorted(criteria.category_ids)),
        tuple((k, tuple(sorted(v))) for k, v in sorted(criteria.attributes.items())),
        criteria.page,
        criteria.page_size,
    )


class QueryCanonicalizer:
    """Deterministic criteria -> query string encoder with a single memo slot.

    Criteria objects are rebuilt on every change, so the memo is keyed on
    make_stable_key rather than identity. A different key replaces the slot.
    """

    def __init__(self, default_page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.default_page_size = default_page_size
        self.computations = 0
        self._last_key: Optional[Tuple[Any, ...]] = None
        self._last_result: Optional[str] = None

    def encode(self, criteria: FilterCriteria) -> str:
        """Return '?a=b&...' or '' when every field is at its default."""
        key = make_stable_key(criteria)
        if key == self._last_key and self._last_result is not None:
            return self._last_result

        result = self._build(criteria)
        self.computations += 1
        self._last_key = key
        self._last_result = result
        return result

    def _build(self, criteria: FilterCriteria) -> str:
        qp: List[str] = []

        if criteria.sort != DEFAULT_SORT:
            qp.append(f"sort={quote(criteria.sort, safe='')}")

        if criteria.price.min is not None:
            qp.append(f"priceMin={format_number(criteria.price.min)}")

        if criteria.price.max is not None:
            qp.append(f"priceMax={format_number(criteria.price.max)}")

        if criteria.category_ids:
            joined = ",".join(sorted(criteria.category_ids))
            qp.append(f"categoryIds={quote(joined, safe=',')}")

        # One parameter per attribute: colorFamily=blue,red&size=L,M
        for key, values in sorted(criteria.attributes.items()):
            joined = ",".join(sorted(values))
            qp.append(f"{quote(key, safe='')}={quote(joined, safe=',')}")

        if criteria.page > 1:
            qp.append(f"page={criteria.page}")

        if criteria.page_size != self.default_page_size:
            qp.append(f"pageSize={criteria.page_size}")

        return f"?{'&'.join(qp)}" if qp else ""


def _split_query(search: str) -> List[Tuple[str, str]]:
    return parse_qsl(search[1:] if search.startswith("?") else search, keep_blank_values=True)


def extract_category_name(search: Optional[str]) -> Optional[str]:
    """The human-readable ``category`` parameter, if the query carries one."""
    for key, value in _split_query(search or ""):
        if key == "category":
            return value.strip() or None
    return None


def parse_query(
    search: Optional[str],
    hierarchy: Optional[CategoryHierarchy] = None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> FilterCriteria:
    """Decode a query string into criteria, falling back to defaults field by field.

    A ``category`` name is resolved to the category and its descendants only
    when ``hierarchy`` already holds a tree and no ``categoryIds`` were given.
    Otherwise it is dropped so the caller can resolve it once a tree arrives.
    """
    if not search or search == "?":
        return FilterCriteria(page_size=default_page_size)

    params: Dict[str, str] = {}
    attributes: Dict[str, List[str]] = {}
    for key, value in _split_query(search):
        if key in RESERVED_PARAMS:
            # First occurrence wins for reserved keys
            params.setdefault(key, value)
            continue
        # A repeated attribute key replaces the earlier values
        values = split_values(value)
        if values:
            attributes[key] = values
        else:
            attributes.pop(key, None)

    sort = params.get("sort") or DEFAULT_SORT
    if sort not in SORT_KEYS:
        sort = DEFAULT_SORT

    category_ids: Set[str] = set(split_values(params.get("categoryIds")))

    category_name = (params.get("category") or "").strip()
    if category_name and not category_ids and hierarchy is not None and hierarchy.is_loaded:
        node = hierarchy.find_by_name(category_name)
        if node:
            category_ids = set(hierarchy.closure(node.id))
        else:
            logger.warning("Unknown category name in query: %s", category_name)

    return FilterCriteria(
        sort=sort,
        price=PriceRange(min=parse_number(params.get("priceMin")), max=parse_number(params.get("priceMax"))),
        category_ids=frozenset(category_ids),
        attributes=attributes,
        page=parse_positive_int(params.get("page"), 1),
        page_size=parse_positive_int(params.get("pageSize"), default_page_size),
    )
