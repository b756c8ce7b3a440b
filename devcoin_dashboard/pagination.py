"""Lazy page iteration and request throttling."""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fetches one page: (url, params) -> (items, next page url or None)
PageFetcher = Callable[[str, dict | None], Awaitable[tuple[list[Any], str | None]]]


class RateLimiter:
    """Pauses after every ``every``-th call to ``tick``.

    Requests are issued one at a time; the limiter only adds a fixed pause
    periodically to stay under the forge's secondary rate limits.
    """

    def __init__(
        self,
        every: int,
        pause: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the limiter.

        Args:
            every: Pause after this many calls (0 disables pausing)
            pause: Seconds to pause
            sleep: Coroutine used to pause
        """
        self.every = every
        self.pause = pause
        self._sleep = sleep
        self.calls = 0
        self.pauses = 0

    async def tick(self) -> None:
        self.calls += 1
        if self.every <= 0 or self.pause <= 0:
            return
        if self.calls % self.every == 0:
            logger.debug(f"Throttling for {self.pause}s after {self.calls} requests")
            self.pauses += 1
            await self._sleep(self.pause)


class Paginator(Generic[T]):
    """Async iterable over the pages of a list endpoint.

    Pages are fetched lazily, one request per page, so breaking out of the
    loop stops further requests. Each ``async for`` restarts from the first
    page.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        url: str,
        params: dict | None = None,
        max_pages: int | None = None,
        limiter: RateLimiter | None = None,
    ):
        self._fetch_page = fetch_page
        self.url = url
        self.params = dict(params or {})
        self.max_pages = max_pages
        self.limiter = limiter

    def __aiter__(self) -> AsyncIterator[list[T]]:
        return self._pages()

    async def _pages(self) -> AsyncIterator[list[T]]:
        url: str | None = self.url
        params: dict | None = dict(self.params)
        page_num = 1

        while url:
            items, next_url = await self._fetch_page(url, params)
            if not items:
                return

            yield items

            if self.max_pages is not None and page_num >= self.max_pages:
                return

            # The next URL already carries the query string
            url, params = next_url, None
            page_num += 1

            if url and self.limiter is not None:
                await self.limiter.tick()

    async def items(self) -> AsyncIterator[T]:
        """Iterate over individual items across all pages."""
        async for page in self:
            for item in page:
                yield item

    async def collect(self) -> list[T]:
        """Fetch every page and return all items."""
        results: list[T] = []
        async for page in self:
            results.extend(page)
        return results

    async def first_page(self) -> list[T]:
        async for page in self:
            return page
        return []
