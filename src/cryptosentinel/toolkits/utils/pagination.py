from __future__ import annotations

"""Paginated Collector
=====================

Drives a page-based upstream endpoint to completion, one page at a time.

Key Features:
- Strictly sequential page requests in increasing page-number order
- Terminal conditions: page limit reached, empty page, short page
- Fixed pacing delay between pages, independent of error backoff
- Each page request wrapped in ``retry_with_backoff``
- Partial results preserved on ``CollectionAbortedError``
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Set

from loguru import logger

from ...exceptions import CollectionAbortedError
from .retry import RetryPolicy, retry_with_backoff

__all__ = [
    "AccountRecord",
    "PageResult",
    "CollectorConfig",
    "CollectionResult",
    "collect_all_pages",
]


@dataclass(frozen=True)
class AccountRecord:
    """One token account as reported by the upstream."""

    owner: str
    account: str
    amount: float
    decimals: int = 0

    @property
    def ui_amount(self) -> float:
        """Raw amount scaled by the mint's decimals."""
        return self.amount / (10 ** self.decimals) if self.decimals else float(self.amount)


@dataclass
class PageResult:
    page_number: int
    page_size: int
    items: List[AccountRecord]

    @property
    def is_last_page(self) -> bool:
        return len(self.items) < self.page_size


@dataclass
class CollectorConfig:
    page_size: int = 1000
    max_pages: int = 0  # 0 = unlimited
    delay_between_pages: float = 1.5
    retry_policy: RetryPolicy = field(default_factory=lambda: RetryPolicy.preset("holder_pages"))


@dataclass
class CollectionResult:
    """Everything accumulated by one collection run."""

    records: List[AccountRecord] = field(default_factory=list)
    unique_owners: Set[str] = field(default_factory=set)
    total_supply_estimate: float = 0.0
    pages_fetched: int = 0
    has_more_pages: bool = True

    @property
    def unique_key_count(self) -> int:
        return len(self.unique_owners)

    def add(self, record: AccountRecord) -> bool:
        """Accumulate one record; records without an owner are skipped."""
        if not record.owner:
            return False
        self.records.append(record)
        self.unique_owners.add(record.owner)
        self.total_supply_estimate += record.ui_amount
        return True


FetchPage = Callable[[int], Awaitable[PageResult]]


async def collect_all_pages(
    fetch_page: FetchPage,
    config: Optional[CollectorConfig] = None,
    description: str = "page",
) -> CollectionResult:
    """Collect every page from ``fetch_page`` until a terminal condition.

    Terminal conditions, checked in order for each page:

    1. ``config.max_pages > 0`` and the next page number exceeds it: stop
       without fetching (``has_more_pages`` stays True).
    2. The page has no items: stop, this is the normal end of data.
    3. The page has fewer items than ``config.page_size``: process it, then stop.

    ``total_supply_estimate`` is the sum of the observed (decimal-scaled)
    account amounts. It only approximates the mint's real supply, and only
    covers the pages actually fetched.

    Args:
        fetch_page: Coroutine function returning the ``PageResult`` for a page number
        config: Page size, page limit, pacing delay and retry policy
        description: Label used in log lines

    Returns:
        CollectionResult

    Raises:
        CollectionAbortedError: A page exhausted its retries; ``partial_result``
            holds everything collected before it
    """
    config = config or CollectorConfig()
    result = CollectionResult()
    page_number = 1

    while True:
        if config.max_pages > 0 and page_number > config.max_pages:
            logger.info(f"{description}: reached page limit ({config.max_pages}), stopping")
            break

        if page_number > 1 and config.delay_between_pages > 0:
            await asyncio.sleep(config.delay_between_pages)

        try:
            page = await retry_with_backoff(
                lambda: fetch_page(page_number),
                config.retry_policy,
                description=f"{description} {page_number}",
            )
        except Exception as e:
            logger.error(
                f"{description} {page_number} failed after retries; "
                f"keeping {len(result.records)} records from {result.pages_fetched} pages"
            )
            raise CollectionAbortedError(page_number, result, cause=e) from e

        result.pages_fetched += 1

        if not page.items:
            result.has_more_pages = False
            logger.debug(f"{description} {page_number} is empty, collection complete")
            break

        skipped = sum(1 for record in page.items if not result.add(record))
        if skipped:
            logger.debug(f"{description} {page_number}: skipped {skipped} records without owner")

        logger.debug(
            f"{description} {page_number}: {len(page.items)} records, "
            f"{result.unique_key_count} unique owners so far"
        )

        if len(page.items) < config.page_size:
            result.has_more_pages = False
            break

        page_number += 1

    logger.info(
        f"{description}: collected {len(result.records)} records "
        f"({result.unique_key_count} unique owners) over {result.pages_fetched} pages"
    )
    return result
