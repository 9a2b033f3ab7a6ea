"""One catalog page session: store, address and fetching wired together.

Flow:
1. start() reads the address once and parses it into the initial criteria
2. every store change is written back to the address and handed to the orchestrator
3. a category tree arriving later resolves a ``category`` name the parser had to drop

Entry points: FilterSession.start(), FilterSession.store
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from .address import AbstractLocation, AddressSynchronizer
from .config import DEBOUNCE_DELAY, DEFAULT_PAGE_SIZE, FETCH_TIMEOUT
from .datasource import AbstractDataSource
from .hierarchy import CategoryHierarchy
from .logger import get_logger
from .models import CategoryNode, FilterCriteria
from .orchestrator import FetchOrchestrator, FetchState
from .query import QueryCanonicalizer, extract_category_name
from .store import FilterStore
from .timers import AbstractScheduler
from .utils import serialize_criteria, serialize_meta

logger = get_logger("session")


class FilterSession:
    """Wires the filter store to the address and the fetch orchestrator."""

    def __init__(
        self,
        source: AbstractDataSource,
        location: AbstractLocation,
        hierarchy: Optional[CategoryHierarchy] = None,
        scheduler: Optional[AbstractScheduler] = None,
        canonicalizer: Optional[QueryCanonicalizer] = None,
        debounce_delay: float = DEBOUNCE_DELAY,
        timeout: Optional[float] = FETCH_TIMEOUT,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.hierarchy = hierarchy or CategoryHierarchy()
        # One canonicalizer for address and fetch: the second encode of a change is a memo hit
        self.canonicalizer = canonicalizer or QueryCanonicalizer(default_page_size)
        self.address = AddressSynchronizer(location, self.canonicalizer)
        self.orchestrator = FetchOrchestrator(
            source,
            scheduler=scheduler,
            canonicalizer=self.canonicalizer,
            debounce_delay=debounce_delay,
            timeout=timeout,
        )
        self.default_page_size = default_page_size
        self.store: Optional[FilterStore] = None
        self.pending_category_name: Optional[str] = None
        self._unsubscribers: List[Callable[[], None]] = []

    @property
    def criteria(self) -> FilterCriteria:
        if self.store is None:
            raise RuntimeError("session not started")
        return self.store.state

    @property
    def results(self) -> FetchState:
        return self.orchestrator.state

    def start(self) -> FilterStore:
        """Build the store from the address and fire the initial fetch. Needs a running loop."""
        if self.store is not None:
            return self.store

        initial = self.address.read_initial(self.hierarchy)
        name = extract_category_name(self.address.initial_query)
        if name and not initial.category_ids:
            # Parser could not resolve it yet; retry once a tree is available
            self.pending_category_name = name
            logger.debug("Deferring category name %r until the tree is loaded", name)

        self.store = FilterStore(initial, self.hierarchy, self.default_page_size)
        self._unsubscribers.append(self.store.subscribe(self._on_change))
        self._on_change(initial)
        return self.store

    def _on_change(self, criteria: FilterCriteria) -> None:
        self.address.sync(criteria)
        self.orchestrator.observe(criteria)

    def set_category_tree(self, tree: Sequence[CategoryNode]) -> None:
        """Install a new tree snapshot and resolve a deferred category name against it."""
        self.hierarchy.set_tree(tree)
        name, self.pending_category_name = self.pending_category_name, None
        if not name or self.store is None or self.store.state.category_ids:
            return
        node = self.hierarchy.find_by_name(name)
        if node is None:
            logger.warning("Category %r not found in tree", name)
            return
        self.store.replace_category(node.id)

    def refetch(self, invalidate: bool = False) -> int:
        return self.orchestrator.refetch(invalidate=invalidate)

    async def wait_settled(self) -> FetchState:
        return await self.orchestrator.wait_settled()

    async def aclose(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self.orchestrator.aclose()

    def snapshot(self) -> Dict[str, Any]:
        """Address plus results, ready for JSON."""
        state = self.orchestrator.state
        return {
            "query": self.address.last_written or "",
            "criteria": serialize_criteria(self.criteria),
            "items": state.items,
            "meta": serialize_meta(state.meta) if state.meta else None,
            "loading": state.loading,
            "refreshing": state.refreshing,
            "error": {"message": state.error.message, "status": state.error.status} if state.error else None,
        }
