"""Exhaustive fetch over paginated Gate endpoints.

The helpers take a page-fetch callable and keep calling it until the remote
side reports the last page. They know nothing about HTTP; the Gate adapter
supplies the callables. No retry happens here: any exception raised by the
callable propagates to the caller.

Two pagination styles are in use by the Gate:
    - offset: ``fetch_page(page_index, page_size) -> Page``; loop while
      ``page_index < total_pages`` (re-read from every response)
    - cursor: ``fetch_page(start_after, page_size) -> StartAfterPage``; loop
      while ``next_start_after`` is not None
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Optional, TypeVar

from .entities import Page, StartAfterPage

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100

PageFetcher = Callable[[int, int], Awaitable[Page[T]]]
StartAfterFetcher = Callable[[Optional[str], int], Awaitable[StartAfterPage[T]]]


async def paginate_pages(
    fetch_page: PageFetcher,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> AsyncIterator[list[T]]:
    """Yield the content of every offset page, in page order.

    The first page is always requested; ``total_pages`` of each response
    decides whether another request follows.
    """
    page_index = 0
    while True:
        page = await fetch_page(page_index, page_size)
        page_index += 1
        yield page.content
        if page_index >= page.total_pages:
            break

    logger.debug(f"Offset pagination complete after {page_index} pages")


async def fetch_all_pages(
    fetch_page: PageFetcher,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[T]:
    """Collect all offset pages into a single list."""
    items: list[T] = []
    async for content in paginate_pages(fetch_page, page_size):
        items.extend(content)
    return items


async def paginate_start_after(
    fetch_page: StartAfterFetcher,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> AsyncIterator[StartAfterPage[T]]:
    """Yield every cursor page, feeding ``next_start_after`` into the next call."""
    start_after: Optional[str] = None
    pages_fetched = 0
    while True:
        page = await fetch_page(start_after, page_size)
        pages_fetched += 1
        yield page
        start_after = page.next_start_after
        if start_after is None:
            break

    logger.debug(f"Cursor pagination complete after {pages_fetched} pages")


async def fetch_all_start_after(
    fetch_page: StartAfterFetcher,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> tuple[list[T], int]:
    """Collect all cursor pages.

    Returns:
        Tuple of (content of all pages, summed invalid entry count)
    """
    items: list[T] = []
    invalid_entries = 0
    async for page in paginate_start_after(fetch_page, page_size):
        items.extend(page.content)
        invalid_entries += page.invalid_entries
    return items, invalid_entries
