"""Sequential page iteration over async page readers."""
import logging
from typing import AsyncIterator, Awaitable, Callable, List, TypeVar

from .repository import DataRetrievalError

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_PAGE_SIZE = 1000

PageFetcher = Callable[[int, int], Awaitable[List[T]]]


async def iter_pages(
    fetch: PageFetcher,
    page_size: int = DEFAULT_PAGE_SIZE,
    context: str = "",
) -> AsyncIterator[List[T]]:
    """Yield pages from `fetch(limit, offset)` in increasing offset order.

    The scan stops at the first page shorter than page_size. Any failure
    aborts the whole scan with DataRetrievalError so callers never fold a
    partial result set.

    Args:
        fetch: Coroutine function taking (limit, offset)
        page_size: Rows per page
        context: Description of the scan for logging

    Yields:
        Non-empty pages of rows
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    offset = 0
    pages = 0
    while True:
        try:
            page = await fetch(page_size, offset)
        except Exception as e:
            logger.error(
                "PAGE_FETCH_FAILED",
                extra={"context": context, "offset": offset, "error": str(e)}
            )
            raise DataRetrievalError(
                f"Page read failed at offset {offset}: {e}", offset=offset
            ) from e

        if page:
            pages += 1
            yield page

        if len(page) < page_size:
            break
        offset += page_size

    logger.debug(
        "PAGE_SCAN_COMPLETE",
        extra={"context": context, "pages": pages, "page_size": page_size}
    )
