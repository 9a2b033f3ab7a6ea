"""Filter-query synchronization for catalog pages."""

from .address import AddressSynchronizer, MemoryLocation
from .datasource import CachedDataSource, InMemoryCatalog, load_sample_catalog
from .hierarchy import CategoryHierarchy, build_descendant_map, get_descendants
from .models import CategoryNode, FilterCriteria, PriceRange, RequestParams, ResultPage
from .orchestrator import FetchOrchestrator, FetchState
from .query import QueryCanonicalizer, parse_query
from .session import FilterSession
from .store import FilterStore

__all__ = [
    "AddressSynchronizer",
    "CachedDataSource",
    "CategoryHierarchy",
    "CategoryNode",
    "FetchOrchestrator",
    "FetchState",
    "FilterCriteria",
    "FilterSession",
    "FilterStore",
    "InMemoryCatalog",
    "MemoryLocation",
    "PriceRange",
    "QueryCanonicalizer",
    "RequestParams",
    "ResultPage",
    "build_descendant_map",
    "get_descendants",
    "load_sample_catalog",
    "parse_query",
]
