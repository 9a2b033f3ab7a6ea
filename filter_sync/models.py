# Data models for filter state, category trees and data-layer traffic.
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from .config import DEFAULT_PAGE_SIZE, DEFAULT_SORT, RESERVED_PARAMS, SERVER_SORT, SORT_KEYS

Number = Union[int, float]


@dataclass(frozen=True)
class PriceRange:
    """Price bounds chosen by the user. None means the bound is not set."""

    min: Optional[Number] = None
    max: Optional[Number] = None


def _freeze_attributes(attributes: Optional[Mapping[str, Iterable[str]]]) -> Mapping[str, FrozenSet[str]]:
    frozen: Dict[str, FrozenSet[str]] = {}
    for key, values in (attributes or {}).items():
        if key in RESERVED_PARAMS:
            raise ValueError(f"reserved key cannot be an attribute: {key!r}")
        value_set = frozenset(values)
        # Keys with no selected values are pruned, never stored empty
        if value_set:
            frozen[key] = value_set
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class FilterCriteria:
    """Every active filter, sort and pagination choice.

    Instances are never mutated; store intents build new ones with
    dataclasses.replace, which re-runs the normalization below.
    """

    price: PriceRange = field(default_factory=PriceRange)
    sort: str = DEFAULT_SORT
    category_ids: FrozenSet[str] = frozenset()
    attributes: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    search: str = ""
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.sort not in SORT_KEYS:
            raise ValueError(f"unknown sort key: {self.sort!r}")
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise ValueError(f"page must be a positive integer, got {self.page!r}")
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int) or self.page_size < 1:
            raise ValueError(f"page_size must be a positive integer, got {self.page_size!r}")
        object.__setattr__(self, "category_ids", frozenset(self.category_ids))
        object.__setattr__(self, "attributes", _freeze_attributes(self.attributes))

    def with_changes(self, **changes: Any) -> "FilterCriteria":
        return replace(self, **changes)


@dataclass
class CategoryNode:
    """One node of the category tree snapshot."""

    id: str
    name: str
    parent_id: Optional[str] = None
    children: List["CategoryNode"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], parent_id: Optional[str] = None) -> "CategoryNode":
        """Build a node (and its subtree) from an API-shaped dict."""
        node_id = str(data.get("_id") or data.get("id") or "")
        return cls(
            id=node_id,
            name=data.get("name", ""),
            parent_id=data.get("parentId", parent_id),
            children=[cls.from_dict(child, node_id) for child in data.get("children") or []],
        )


@dataclass(frozen=True)
class RequestParams:
    """Parameters sent to the data layer for one page of results.

    sort holds the data-layer sort string (see config.SERVER_SORT), not the
    client sort key.
    """

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    sort: Optional[str] = None
    price_min: Optional[Number] = None
    price_max: Optional[Number] = None
    category_ids: Tuple[str, ...] = ()
    attributes: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    search: Optional[str] = None

    @classmethod
    def from_criteria(cls, criteria: FilterCriteria) -> "RequestParams":
        return cls(
            page=criteria.page,
            page_size=criteria.page_size,
            sort=SERVER_SORT.get(criteria.sort, SERVER_SORT[DEFAULT_SORT]),
            price_min=criteria.price.min,
            price_max=criteria.price.max,
            category_ids=tuple(sorted(criteria.category_ids)),
            attributes=tuple((k, tuple(sorted(v))) for k, v in sorted(criteria.attributes.items())),
            search=criteria.search or None,
        )

    def next_page(self) -> "RequestParams":
        return replace(self, page=self.page + 1)

    def cache_key(self) -> Tuple[Any, ...]:
        """Stable key that ignores the order ids and attribute values were given in."""
        return (
            self.price_min,
            self.price_max,
            self.sort,
            self.page,
            self.page_size,
            tuple(sorted(self.category_ids)),
            tuple(sorted((k, tuple(sorted(v))) for k, v in self.attributes)),
            self.search,
        )


@dataclass(frozen=True)
class ResultMeta:
    total: int
    filtered: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_prev: bool


@dataclass(frozen=True)
class ResultPage:
    """One page of items plus pagination meta, as returned by the data layer."""

    data: List[Dict[str, Any]]
    meta: ResultMeta


@dataclass(frozen=True)
class FetchError:
    """User-visible fetch failure."""

    message: str
    status: Optional[int] = None


# Fetch classification tags
FETCH_INITIAL = "initial"
FETCH_PAGINATION = "pagination"
FETCH_SUBSTANTIVE = "substantive"


@dataclass(frozen=True)
class FetchSnapshot:
    """The criteria fields that affect server results, as seen by the orchestrator."""

    sort: str
    price_min: Optional[Number]
    price_max: Optional[Number]
    category_ids: FrozenSet[str]
    attributes: Tuple[Tuple[str, FrozenSet[str]], ...]
    search: str
    page: int
    page_size: int
    sequence: int = 0
    kind: str = FETCH_INITIAL

    @classmethod
    def from_criteria(cls, criteria: FilterCriteria) -> "FetchSnapshot":
        return cls(
            sort=criteria.sort,
            price_min=criteria.price.min,
            price_max=criteria.price.max,
            category_ids=criteria.category_ids,
            attributes=tuple(sorted(criteria.attributes.items())),
            search=criteria.search,
            page=criteria.page,
            page_size=criteria.page_size,
        )

    def filter_key(self) -> Tuple[Any, ...]:
        return (self.sort, self.price_min, self.price_max, self.category_ids, self.attributes, self.search)

    def pagination_key(self) -> Tuple[int, int]:
        return (self.page, self.page_size)
