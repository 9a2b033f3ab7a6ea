"""Navigable address synchronization.

The address is read once at startup and parsed into the initial criteria.
After that the synchronizer only writes: every criteria change is projected
to its canonical query string and written with a non-navigating replace,
skipping the write when the string has not changed since the last one.
"""

from typing import List, Optional

from .hierarchy import CategoryHierarchy
from .logger import get_logger
from .models import FilterCriteria
from .query import QueryCanonicalizer, parse_query

logger = get_logger("address")


class AbstractLocation:
    """Interface for a navigable address (e.g. a browser location)."""

    def read(self) -> str:
        #Return the current query string, '?...' or ''
        raise NotImplementedError

    def replace(self, query: str) -> None:
        #Swap the query string in place without adding a history entry
        raise NotImplementedError


class MemoryLocation(AbstractLocation):
    """In-process address: a path plus a query string."""

    def __init__(self, query: str = "", path: str = "/products") -> None:
        self.path = path
        self.query = query
        self.history: List[str] = [self.href]
        self.replacements = 0

    @property
    def href(self) -> str:
        return f"{self.path}{self.query}"

    def read(self) -> str:
        return self.query

    def replace(self, query: str) -> None:
        self.query = query
        self.history[-1] = self.href
        self.replacements += 1


class AddressSynchronizer:
    """Projects criteria onto the address; idempotent for unchanged strings."""

    def __init__(self, location: AbstractLocation, canonicalizer: Optional[QueryCanonicalizer] = None) -> None:
        self.location = location
        self.canonicalizer = canonicalizer or QueryCanonicalizer()
        self.last_written: Optional[str] = None
        self.initial_query: Optional[str] = None
        self._initial: Optional[FilterCriteria] = None

    def read_initial(self, hierarchy: Optional[CategoryHierarchy] = None) -> FilterCriteria:
        """Parse the address into criteria. The address is read only on the first call."""
        if self._initial is None:
            raw = self.location.read()
            self.initial_query = raw
            self._initial = parse_query(raw, hierarchy, self.canonicalizer.default_page_size)
            logger.debug("Initial criteria from address %r", raw)
        return self._initial

    def sync(self, criteria: FilterCriteria) -> bool:
        """Write the canonical query for criteria. Returns False when nothing was written."""
        query = self.canonicalizer.encode(criteria)
        if query == self.last_written:
            logger.debug("Address unchanged, skipping write")
            return False
        self.location.replace(query)
        self.last_written = query
        logger.debug("Address replaced with %r", query)
        return True
