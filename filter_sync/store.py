"""Filter state store.

Intents are small frozen dataclasses. reduce() applies one intent to the
current criteria and returns a new value; FilterStore holds the current value,
applies intents in dispatch order and notifies subscribers.

Every intent that changes what is filtered sends the user back to page 1.
Only SetPage keeps the current page.
"""

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from .config import DEFAULT_PAGE_SIZE, SORT_KEYS
from .hierarchy import CategoryHierarchy, DescendantMap, deselect_closure, get_descendants, select_closure
from .logger import get_logger
from .models import FilterCriteria, Number, PriceRange

logger = get_logger("store")

Listener = Callable[[FilterCriteria], None]


@dataclass(frozen=True)
class SetSort:
    sort: str


@dataclass(frozen=True)
class SetPriceMin:
    value: Optional[Number]


@dataclass(frozen=True)
class SetPriceMax:
    value: Optional[Number]


@dataclass(frozen=True)
class SetCategoryIds:
    category_ids: FrozenSet[str]


@dataclass(frozen=True)
class ToggleCategory:
    # "" clears the whole category selection
    category_id: str


@dataclass(frozen=True)
class ReplaceCategory:
    category_id: str


@dataclass(frozen=True)
class ToggleAttribute:
    key: str
    value: str


@dataclass(frozen=True)
class ClearAttribute:
    key: str


@dataclass(frozen=True)
class ClearAllAttributes:
    pass


@dataclass(frozen=True)
class SetPage:
    page: int


@dataclass(frozen=True)
class SetPageSize:
    page_size: int


@dataclass(frozen=True)
class SetSearch:
    text: str


@dataclass(frozen=True)
class Reset:
    pass


def reduce(
    criteria: FilterCriteria,
    intent: object,
    descendant_map: Optional[DescendantMap] = None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> FilterCriteria:
    """Apply one intent. Never mutates ``criteria``."""
    descendant_map = descendant_map or {}

    if isinstance(intent, SetSort):
        if intent.sort not in SORT_KEYS:
            raise ValueError(f"unknown sort key: {intent.sort!r}")
        return criteria.with_changes(sort=intent.sort, page=1)

    if isinstance(intent, SetPriceMin):
        price = PriceRange(min=intent.value, max=criteria.price.max)
        return criteria.with_changes(price=price, page=1)

    if isinstance(intent, SetPriceMax):
        price = PriceRange(min=criteria.price.min, max=intent.value)
        return criteria.with_changes(price=price, page=1)

    if isinstance(intent, SetCategoryIds):
        return criteria.with_changes(category_ids=frozenset(intent.category_ids), page=1)

    if isinstance(intent, ToggleCategory):
        if intent.category_id == "":
            return criteria.with_changes(category_ids=frozenset(), page=1)
        if intent.category_id in criteria.category_ids:
            ids = deselect_closure(criteria.category_ids, intent.category_id, descendant_map)
        else:
            ids = select_closure(criteria.category_ids, intent.category_id, descendant_map)
        return criteria.with_changes(category_ids=ids, page=1)

    if isinstance(intent, ReplaceCategory):
        ids = frozenset([intent.category_id, *get_descendants(descendant_map, intent.category_id)])
        return criteria.with_changes(category_ids=ids, page=1)

    if isinstance(intent, ToggleAttribute):
        current = criteria.attributes.get(intent.key, frozenset())
        values = current - {intent.value} if intent.value in current else current | {intent.value}
        attributes: Dict[str, FrozenSet[str]] = dict(criteria.attributes)
        if values:
            attributes[intent.key] = values
        else:
            attributes.pop(intent.key, None)
        return criteria.with_changes(attributes=attributes, page=1)

    if isinstance(intent, ClearAttribute):
        attributes = {k: v for k, v in criteria.attributes.items() if k != intent.key}
        return criteria.with_changes(attributes=attributes, page=1)

    if isinstance(intent, ClearAllAttributes):
        return criteria.with_changes(attributes={}, page=1)

    if isinstance(intent, SetPage):
        return criteria.with_changes(page=intent.page)

    if isinstance(intent, SetPageSize):
        return criteria.with_changes(page_size=intent.page_size, page=1)

    if isinstance(intent, SetSearch):
        return criteria.with_changes(search=intent.text, page=1)

    if isinstance(intent, Reset):
        return FilterCriteria(page_size=default_page_size)

    raise ValueError(f"unknown intent: {intent!r}")


class FilterStore:
    """Holds the current criteria and applies intents to it."""

    def __init__(
        self,
        initial: Optional[FilterCriteria] = None,
        hierarchy: Optional[CategoryHierarchy] = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.default_page_size = default_page_size
        self.hierarchy = hierarchy or CategoryHierarchy()
        self._state = initial or FilterCriteria(page_size=default_page_size)
        self._listeners: List[Listener] = []

    @property
    def state(self) -> FilterCriteria:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, intent: object) -> FilterCriteria:
        new_state = reduce(self._state, intent, self.hierarchy.descendant_map, self.default_page_size)
        if new_state == self._state:
            return self._state
        logger.debug("Applied %s", intent)
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)
        return new_state

    def set_sort(self, sort: str) -> FilterCriteria:
        return self.dispatch(SetSort(sort))

    def set_price_min(self, value: Optional[Number]) -> FilterCriteria:
        return self.dispatch(SetPriceMin(value))

    def set_price_max(self, value: Optional[Number]) -> FilterCriteria:
        return self.dispatch(SetPriceMax(value))

    def set_category_ids(self, category_ids: Iterable[str]) -> FilterCriteria:
        return self.dispatch(SetCategoryIds(frozenset(category_ids)))

    def toggle_category(self, category_id: str) -> FilterCriteria:
        return self.dispatch(ToggleCategory(category_id))

    def replace_category(self, category_id: str) -> FilterCriteria:
        return self.dispatch(ReplaceCategory(category_id))

    def toggle_attribute(self, key: str, value: str) -> FilterCriteria:
        return self.dispatch(ToggleAttribute(key, value))

    def clear_attribute(self, key: str) -> FilterCriteria:
        return self.dispatch(ClearAttribute(key))

    def clear_all_attributes(self) -> FilterCriteria:
        return self.dispatch(ClearAllAttributes())

    def set_page(self, page: int) -> FilterCriteria:
        return self.dispatch(SetPage(page))

    def set_page_size(self, page_size: int) -> FilterCriteria:
        return self.dispatch(SetPageSize(page_size))

    def set_search(self, text: str) -> FilterCriteria:
        return self.dispatch(SetSearch(text))

    def reset(self) -> FilterCriteria:
        return self.dispatch(Reset())
