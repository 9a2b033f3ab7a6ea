"""Shared fixtures: a fake-clock scheduler, a hand-resolved data source and a small category tree."""

import asyncio
import itertools
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from filter_sync.datasource import AbstractDataSource
from filter_sync.hierarchy import CategoryHierarchy
from filter_sync.models import CategoryNode, RequestParams, ResultMeta, ResultPage
from filter_sync.timers import AbstractScheduler


class FakeScheduler(AbstractScheduler):
    """Timers that only fire when the test advances the clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self._ids = itertools.count(1)
        self.timers: Dict[int, Tuple[float, Callable[[], None]]] = {}

    def start(self, delay: float, fn: Callable[[], None]) -> int:
        handle = next(self._ids)
        self.timers[handle] = (self.now + delay, fn)
        return handle

    def cancel(self, handle: int) -> None:
        self.timers.pop(handle, None)

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted((deadline, h) for h, (deadline, _) in self.timers.items() if deadline <= self.now + 1e-9)
        for _, handle in due:
            _, fn = self.timers.pop(handle)
            fn()

    @property
    def pending(self) -> int:
        return len(self.timers)


class ControlledSource(AbstractDataSource):
    """Every fetch waits on a future the test resolves by index."""

    def __init__(self) -> None:
        self.requests: List[Tuple[RequestParams, asyncio.Future]] = []
        self.prefetched: List[RequestParams] = []
        self.invalidated: List[Optional[RequestParams]] = []

    async def fetch(self, params: RequestParams) -> ResultPage:
        future = asyncio.get_running_loop().create_future()
        self.requests.append((params, future))
        return await future

    async def prefetch(self, params: RequestParams) -> None:
        self.prefetched.append(params)

    def invalidate(self, params: Optional[RequestParams] = None) -> None:
        self.invalidated.append(params)

    def resolve(self, index: int, page: ResultPage) -> None:
        self.requests[index][1].set_result(page)

    def fail(self, index: int, exc: BaseException) -> None:
        self.requests[index][1].set_exception(exc)

    def params(self, index: int) -> RequestParams:
        return self.requests[index][0]


def make_page(ids: List[str], page: int = 1, total_pages: int = 1, page_size: int = 20) -> ResultPage:
    return ResultPage(
        data=[{"id": i} for i in ids],
        meta=ResultMeta(
            total=len(ids) * total_pages,
            filtered=len(ids) * total_pages,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


async def flush() -> None:
    """Let pending tasks and callbacks run."""
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def source() -> ControlledSource:
    return ControlledSource()


@pytest.fixture
def page_factory() -> Callable[..., ResultPage]:
    return make_page


@pytest.fixture
def settle() -> Callable[[], Any]:
    return flush


@pytest.fixture
def tree() -> List[CategoryNode]:
    # A -> [B, C], C -> [D]; E is a separate root
    d = CategoryNode(id="D", name="Dresses", parent_id="C")
    b = CategoryNode(id="B", name="Boots", parent_id="A")
    c = CategoryNode(id="C", name="Clothing", parent_id="A", children=[d])
    a = CategoryNode(id="A", name="All", children=[b, c])
    e = CategoryNode(id="E", name="Extras")
    return [a, e]


@pytest.fixture
def hierarchy(tree) -> CategoryHierarchy:
    return CategoryHierarchy(tree)
