"""Tests for the paginated collector."""

import pytest
from unittest.mock import AsyncMock

from cryptosentinel.exceptions import CollectionAbortedError
from cryptosentinel.toolkits.utils import HTTPClientError, RetryPolicy
from cryptosentinel.toolkits.utils.pagination import (
    AccountRecord,
    CollectorConfig,
    PageResult,
    collect_all_pages,
)


def make_page(page_number, count, page_size, prefix="owner"):
    items = [
        AccountRecord(owner=f"{prefix}{page_number}_{i}", account=f"acct{page_number}_{i}", amount=10.0)
        for i in range(count)
    ]
    return PageResult(page_number=page_number, page_size=page_size, items=items)


def page_source(sizes, page_size):
    """fetch_page stub returning pages of the given sizes, recording requests."""
    requested = []

    async def fetch_page(page_number):
        requested.append(page_number)
        count = sizes[page_number - 1] if page_number <= len(sizes) else 0
        return make_page(page_number, count, page_size)

    return fetch_page, requested


@pytest.fixture
def no_retry_policy():
    return RetryPolicy(max_retries=1, initial_delay=0.01, max_delay=0.1, min_delay=0.0, jitter_factor=0.0)


class TestTerminalConditions:
    """Collection stops exactly where the page sequence says it should."""

    @pytest.mark.asyncio
    async def test_stops_at_short_page(self, mock_sleep, no_retry_policy):
        fetch_page, requested = page_source([5, 5, 3, 5], page_size=5)
        config = CollectorConfig(page_size=5, max_pages=0, delay_between_pages=0.5, retry_policy=no_retry_policy)

        result = await collect_all_pages(fetch_page, config)

        assert requested == [1, 2, 3]
        assert len(result.records) == 13
        assert result.pages_fetched == 3
        assert result.has_more_pages is False

    @pytest.mark.asyncio
    async def test_max_pages_limits_fetches(self, mock_sleep, no_retry_policy):
        fetch_page, requested = page_source([10] * 10, page_size=10)
        config = CollectorConfig(page_size=10, max_pages=3, delay_between_pages=0.5, retry_policy=no_retry_policy)

        result = await collect_all_pages(fetch_page, config)

        assert requested == [1, 2, 3]
        assert result.pages_fetched == 3
        assert len(result.records) == 30
        assert result.has_more_pages is True

    @pytest.mark.asyncio
    async def test_empty_final_page(self, mock_sleep, no_retry_policy):
        fetch_page, requested = page_source([4, 4, 4, 0], page_size=4)
        config = CollectorConfig(page_size=4, max_pages=0, delay_between_pages=0.0, retry_policy=no_retry_policy)

        result = await collect_all_pages(fetch_page, config)

        assert requested == [1, 2, 3, 4]
        assert result.has_more_pages is False
        assert len(result.records) == 12
        assert result.unique_key_count == 12
        assert result.total_supply_estimate == pytest.approx(120.0)

    @pytest.mark.asyncio
    async def test_pacing_delay_between_pages(self, mock_sleep, no_retry_policy):
        fetch_page, _ = page_source([2, 2, 1], page_size=2)
        config = CollectorConfig(page_size=2, max_pages=0, delay_between_pages=1.5, retry_policy=no_retry_policy)

        await collect_all_pages(fetch_page, config)

        assert [call.args[0] for call in mock_sleep.call_args_list] == [1.5, 1.5]


class TestAccumulation:
    """Records, owners and supply estimate."""

    @pytest.mark.asyncio
    async def test_records_without_owner_skipped(self, mock_sleep, no_retry_policy):
        page = PageResult(page_number=1, page_size=10, items=[
            AccountRecord(owner="a", account="1", amount=5.0),
            AccountRecord(owner="", account="2", amount=7.0),
            AccountRecord(owner="a", account="3", amount=1.0),
        ])
        config = CollectorConfig(page_size=10, retry_policy=no_retry_policy)

        result = await collect_all_pages(AsyncMock(return_value=page), config)

        assert len(result.records) == 2
        assert result.unique_owners == {"a"}
        assert result.total_supply_estimate == pytest.approx(6.0)

    def test_ui_amount_scales_by_decimals(self):
        assert AccountRecord(owner="a", account="b", amount=1_500_000, decimals=6).ui_amount == pytest.approx(1.5)
        assert AccountRecord(owner="a", account="b", amount=42).ui_amount == 42.0


class TestFailures:
    """Retries per page and partial results on abort."""

    @pytest.mark.asyncio
    async def test_page_retried_then_succeeds(self, mock_sleep, no_retry_policy):
        calls = {"count": 0}

        async def fetch_page(page_number):
            calls["count"] += 1
            if calls["count"] == 1:
                raise HTTPClientError("HTTP 503 error", 503, "unavailable")
            return make_page(page_number, 1, page_size=5)

        config = CollectorConfig(page_size=5, retry_policy=no_retry_policy)
        result = await collect_all_pages(fetch_page, config)

        assert calls["count"] == 2
        assert len(result.records) == 1

    @pytest.mark.asyncio
    async def test_abort_preserves_partial_result(self, mock_sleep, no_retry_policy):
        async def fetch_page(page_number):
            if page_number == 3:
                raise HTTPClientError("HTTP 500 error", 500, "boom")
            return make_page(page_number, 5, page_size=5)

        config = CollectorConfig(page_size=5, delay_between_pages=0.0, retry_policy=no_retry_policy)

        with pytest.raises(CollectionAbortedError) as exc_info:
            await collect_all_pages(fetch_page, config)

        error = exc_info.value
        assert error.page_number == 3
        assert error.partial_result.pages_fetched == 2
        assert len(error.partial_result.records) == 10
