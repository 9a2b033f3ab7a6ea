"""Fetch orchestration for filtered catalog pages.

States: idle -> debouncing -> in-flight(n) -> settled.

- Pagination-only changes (page / page size) fetch immediately.
- Any other change is debounced (trailing edge); a new change restarts the window.
- The first observation always fetches immediately.
- Every fetch gets a strictly increasing sequence number and only the response
  for the highest number issued so far is admitted. Older responses are
  dropped whatever order they arrive in.
- On an admitted page that has a next page, the next page is prefetched.

Entry points: FetchOrchestrator.observe(), FetchOrchestrator.refetch()
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Set

from .config import DEBOUNCE_DELAY, FETCH_TIMEOUT
from .datasource import AbstractDataSource
from .errors import ApiError
from .logger import get_logger
from .models import (
    FETCH_INITIAL,
    FETCH_PAGINATION,
    FETCH_SUBSTANTIVE,
    FetchError,
    FetchSnapshot,
    FilterCriteria,
    RequestParams,
    ResultMeta,
)
from .query import QueryCanonicalizer
from .timers import AbstractScheduler, AsyncioScheduler

logger = get_logger("orchestrator")

STATUS_IDLE = "idle"
STATUS_DEBOUNCING = "debouncing"
STATUS_IN_FLIGHT = "in_flight"
STATUS_SETTLED = "settled"

DEFAULT_ERROR_MESSAGE = "Failed to load products"


@dataclass(frozen=True)
class FetchState:
    """What the results view renders."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    meta: Optional[ResultMeta] = None
    loading: bool = False  # first load, nothing to show yet
    refreshing: bool = False  # results on screen, newer ones on the way
    error: Optional[FetchError] = None
    status: str = STATUS_IDLE
    query: str = ""


def classify(previous: Optional[FetchSnapshot], current: FetchSnapshot) -> str:
    """initial when nothing was observed before, pagination when only page/page size moved."""
    if previous is None:
        return FETCH_INITIAL
    if previous.filter_key() == current.filter_key() and previous.pagination_key() != current.pagination_key():
        return FETCH_PAGINATION
    return FETCH_SUBSTANTIVE


class FetchOrchestrator:
    """Decides when to fetch and which response wins."""

    def __init__(
        self,
        source: AbstractDataSource,
        scheduler: Optional[AbstractScheduler] = None,
        canonicalizer: Optional[QueryCanonicalizer] = None,
        debounce_delay: float = DEBOUNCE_DELAY,
        timeout: Optional[float] = FETCH_TIMEOUT,
        abort_superseded: bool = False,
    ) -> None:
        self.source = source
        self.scheduler = scheduler or AsyncioScheduler()
        self.canonicalizer = canonicalizer or QueryCanonicalizer()
        self.debounce_delay = debounce_delay
        self.timeout = timeout
        # Cancelling superseded requests only saves work; the sequence check decides
        self.abort_superseded = abort_superseded

        self.state = FetchState()
        self.sequence = 0
        self.last_snapshot: Optional[FetchSnapshot] = None
        self.last_dispatched: Optional[FetchSnapshot] = None

        self._criteria: Optional[FilterCriteria] = None
        self._timer: Any = None
        self._tasks: Dict[int, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()
        self._listeners: List[Callable[[FetchState], None]] = []
        self._settled = asyncio.Event()
        self._settled.set()

    def subscribe(self, listener: Callable[[FetchState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes: Any) -> None:
        self.state = replace(self.state, **changes)
        for listener in list(self._listeners):
            listener(self.state)

    @property
    def debouncing(self) -> bool:
        return self._timer is not None

    def observe(self, criteria: FilterCriteria) -> str:
        """React to new criteria. Returns the classification of the change."""
        snapshot = FetchSnapshot.from_criteria(criteria)
        kind = classify(self.last_snapshot, snapshot)
        self.last_snapshot = replace(snapshot, kind=kind)
        self._criteria = criteria
        self._cancel_timer()

        if kind == FETCH_SUBSTANTIVE:
            self._timer = self.scheduler.start(self.debounce_delay, self._on_debounce_elapsed)
            self._settled.clear()
            self._set_state(status=STATUS_DEBOUNCING)
            logger.debug("Debounce window (re)started: %.3fs", self.debounce_delay)
        else:
            self._dispatch(kind)
        return kind

    def refetch(self, invalidate: bool = False) -> int:
        """Fetch the current criteria now, skipping any debounce.

        With invalidate=True the data layer drops its cached result for these
        exact criteria first.
        """
        if self._criteria is None:
            raise RuntimeError("refetch() called before any criteria were observed")
        self._cancel_timer()
        return self._dispatch(FETCH_SUBSTANTIVE, invalidate=invalidate)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self.scheduler.cancel(self._timer)
            self._timer = None

    def _on_debounce_elapsed(self) -> None:
        self._timer = None
        self._dispatch(FETCH_SUBSTANTIVE)

    def _dispatch(self, kind: str, invalidate: bool = False) -> int:
        self.sequence += 1
        seq = self.sequence
        criteria = self._criteria
        params = RequestParams.from_criteria(criteria)
        query = self.canonicalizer.encode(criteria)
        self.last_dispatched = replace(FetchSnapshot.from_criteria(criteria), sequence=seq, kind=kind)

        if self.abort_superseded:
            for task in self._tasks.values():
                task.cancel()

        has_results = self.state.meta is not None
        self._settled.clear()
        self._set_state(
            loading=not has_results,
            refreshing=has_results,
            error=None,
            status=STATUS_IN_FLIGHT,
            query=query,
        )
        logger.debug("Dispatching fetch #%d (%s) %s", seq, kind, query or "?")

        task = asyncio.create_task(self._run(seq, params, invalidate))
        self._tasks[seq] = task
        task.add_done_callback(lambda _t, s=seq: self._tasks.pop(s, None))
        return seq

    async def _run(self, seq: int, params: RequestParams, invalidate: bool) -> None:
        if invalidate:
            self.source.invalidate(params)
        try:
            page = await asyncio.wait_for(self.source.fetch(params), self.timeout)
        except asyncio.CancelledError:
            logger.debug("Fetch #%d cancelled", seq)
            if seq == self.sequence:
                self._settle(loading=False, refreshing=False)
            raise
        except asyncio.TimeoutError:
            self._fail(seq, FetchError("Request timed out"))
            return
        except ApiError as e:
            self._fail(seq, FetchError(e.message or DEFAULT_ERROR_MESSAGE, e.status))
            return
        except Exception as e:
            self._fail(seq, FetchError(str(e) or DEFAULT_ERROR_MESSAGE))
            return

        if seq != self.sequence:
            logger.debug("Ignoring stale response #%d (latest is #%d)", seq, self.sequence)
            return

        self._settle(items=list(page.data), meta=page.meta, loading=False, refreshing=False, error=None)
        if page.meta.has_next:
            self._prefetch(params.next_page())

    def _fail(self, seq: int, error: FetchError) -> None:
        if seq != self.sequence:
            logger.debug("Ignoring stale failure #%d: %s", seq, error.message)
            return
        logger.error("Fetch #%d failed: %s", seq, error.message)
        # Items and meta stay as they were
        self._settle(error=error, loading=False, refreshing=False)

    def _settle(self, **changes: Any) -> None:
        status = STATUS_DEBOUNCING if self._timer is not None else STATUS_SETTLED
        self._set_state(status=status, **changes)
        if status == STATUS_SETTLED:
            self._settled.set()

    def _prefetch(self, params: RequestParams) -> None:
        task = asyncio.create_task(self.source.prefetch(params))
        self._background.add(task)
        task.add_done_callback(self._prefetch_done)

    def _prefetch_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Prefetch failed: %s", exc)

    async def wait_settled(self) -> FetchState:
        """Wait until no debounce is pending and the latest fetch has finished."""
        await self._settled.wait()
        return self.state

    async def aclose(self) -> None:
        """Cancel the debounce timer and any outstanding fetch or prefetch."""
        self._cancel_timer()
        pending = [*self._tasks.values(), *self._background]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._settled.set()
