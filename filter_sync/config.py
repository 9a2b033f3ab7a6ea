DEFAULT_SORT = "recent"
SORT_KEYS = ("recent", "priceAsc", "priceDesc", "popular")
DEFAULT_PAGE_SIZE = 20 # Items per page when the address does not say otherwise

DEBOUNCE_DELAY = 0.45 # Seconds of quiet before a substantive filter change is fetched
FETCH_TIMEOUT = 15.0 # Upper bound in seconds for one data-layer request
FILTER_CACHE_TTL = 120.0 # Seconds a cached result page stays fresh

MAX_PAGE_SIZE = 100 # Catalog backend refuses larger pages

# Client sort keys mapped to the sort strings the data layer understands.
# "popular" is approximated by view count.
SERVER_SORT = {
    "recent": "date_desc",
    "priceAsc": "price_asc",
    "priceDesc": "price_desc",
    "popular": "views_desc",
}

# Address keys with a fixed meaning; never usable as attribute keys
RESERVED_PARAMS = frozenset({"sort", "priceMin", "priceMax", "categoryIds", "category", "page", "pageSize"})
