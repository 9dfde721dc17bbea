"""Tests for DrainRecalcQueueUseCase."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from stockledger.application.use_cases.drain_recalc_queue import DrainRecalcQueueUseCase
from stockledger.core.entities import RecalcQueueEntry, RecalcStatus
from stockledger.core.exceptions import DatabaseError
from stockledger.core.services import CascadeResult

TODAY = date(2024, 3, 15)


def _entry(entry_id: int, item_code: str, day: date, retry_count: int = 0) -> RecalcQueueEntry:
    return RecalcQueueEntry(
        id=entry_id,
        company_id=1,
        item_type="ROH",
        item_code=item_code,
        recalc_date=day,
        status=RecalcStatus.PROCESSING,
        retry_count=retry_count,
    )


def _cascade_result(company_id, item_type, item_code, start, end, failed_date=None):
    return CascadeResult(
        company_id=company_id,
        item_type=item_type,
        item_code=item_code,
        start_date=start,
        end_date=end,
        failed_date=failed_date,
        error="ledger unavailable" if failed_date else None,
    )


@pytest.fixture
def mock_queue_store():
    store = AsyncMock()
    store.release_stale.return_value = 0
    store.mark_done.side_effect = lambda ids: len(ids)
    return store


@pytest.fixture
def mock_cascade():
    cascade = AsyncMock()
    cascade.recalc_from.side_effect = (
        lambda company_id, item_type, item_code, start, end: _cascade_result(
            company_id, item_type, item_code, start, end
        )
    )
    return cascade


@pytest.fixture
def use_case(mock_queue_store, mock_cascade):
    return DrainRecalcQueueUseCase(
        queue_store=mock_queue_store,
        cascade=mock_cascade,
        batch_size=10,
        max_retries=3,
        max_concurrency=2,
        stale_claim_minutes=30,
        today=lambda: TODAY,
    )


class TestDrainRecalcQueueUseCase:
    async def test_empty_queue(self, use_case, mock_queue_store, mock_cascade):
        mock_queue_store.claim_batch.return_value = []

        result = await use_case.execute(1)

        assert result.claimed == 0
        mock_cascade.recalc_from.assert_not_called()

    async def test_groups_by_item_from_earliest_date(self, use_case, mock_queue_store, mock_cascade):
        """Entries of one item run as a single cascade from the earliest claimed date to today."""
        mock_queue_store.claim_batch.return_value = [
            _entry(1, "RM-1", date(2024, 3, 10)),
            _entry(2, "RM-1", date(2024, 3, 5)),
            _entry(3, "RM-2", date(2024, 3, 14)),
        ]

        result = await use_case.execute(1)

        calls = {call.args[2]: call.args for call in mock_cascade.recalc_from.call_args_list}
        assert calls["RM-1"] == (1, "ROH", "RM-1", date(2024, 3, 5), TODAY)
        assert calls["RM-2"] == (1, "ROH", "RM-2", date(2024, 3, 14), TODAY)
        assert result.claimed == 3
        assert result.done == 3
        mock_queue_store.claim_batch.assert_called_once_with(1, 10, 3)

    async def test_future_date_extends_end(self, use_case, mock_queue_store, mock_cascade):
        mock_queue_store.claim_batch.return_value = [_entry(1, "RM-1", date(2024, 3, 20))]
        await use_case.execute(1)
        assert mock_cascade.recalc_from.call_args.args[4] == date(2024, 3, 20)

    async def test_failed_cascade_marks_failed(self, use_case, mock_queue_store, mock_cascade):
        mock_queue_store.claim_batch.return_value = [_entry(1, "RM-1", date(2024, 3, 10))]
        mock_cascade.recalc_from.side_effect = (
            lambda c, t, i, start, end: _cascade_result(c, t, i, start, end, date(2024, 3, 12))
        )
        mock_queue_store.mark_failed.return_value = [
            _entry(1, "RM-1", date(2024, 3, 10), retry_count=1)
        ]

        result = await use_case.execute(1)

        mock_queue_store.mark_failed.assert_called_once_with([1], "ledger unavailable")
        mock_queue_store.mark_done.assert_not_called()
        assert result.failed == 1
        assert result.escalated == 0
        assert result.failures[0].details["target_date"] == "2024-03-12"

    async def test_escalates_at_retry_limit(self, use_case, mock_queue_store, mock_cascade):
        mock_queue_store.claim_batch.return_value = [_entry(1, "RM-1", date(2024, 3, 10), retry_count=2)]
        mock_cascade.recalc_from.side_effect = (
            lambda c, t, i, start, end: _cascade_result(c, t, i, start, end, start)
        )
        mock_queue_store.mark_failed.return_value = [
            _entry(1, "RM-1", date(2024, 3, 10), retry_count=3)
        ]

        result = await use_case.execute(1)
        assert result.escalated == 1

    async def test_one_item_failure_does_not_block_others(self, use_case, mock_queue_store, mock_cascade):
        mock_queue_store.claim_batch.return_value = [
            _entry(1, "BAD", date(2024, 3, 10)),
            _entry(2, "GOOD", date(2024, 3, 10)),
        ]
        mock_cascade.recalc_from.side_effect = lambda c, t, i, start, end: _cascade_result(
            c, t, i, start, end, start if i == "BAD" else None
        )
        mock_queue_store.mark_failed.return_value = [_entry(1, "BAD", date(2024, 3, 10), 1)]

        result = await use_case.execute(1)

        mock_queue_store.mark_done.assert_called_once_with([2])
        assert result.done == 1
        assert result.failed == 1

    async def test_queue_update_failure_recorded(self, use_case, mock_queue_store):
        mock_queue_store.claim_batch.return_value = [_entry(1, "RM-1", date(2024, 3, 10))]
        mock_queue_store.mark_done.side_effect = DatabaseError("mark_recalc_done", "locked")

        result = await use_case.execute(1)

        assert result.done == 0
        assert len(result.failures) == 1
        assert result.failures[0].details["item_code"] == "RM-1"

    async def test_releases_stale_claims(self, use_case, mock_queue_store):
        mock_queue_store.release_stale.return_value = 2
        mock_queue_store.claim_batch.return_value = []

        result = await use_case.execute(1)

        assert result.released == 2
        mock_queue_store.release_stale.assert_called_once()


class TestExecuteAll:
    async def test_drains_every_company(self, use_case, mock_queue_store):
        mock_queue_store.list_companies_with_work.return_value = [1, 2]
        mock_queue_store.claim_batch.return_value = []

        results = await use_case.execute_all()

        assert [r.company_id for r in results] == [1, 2]
        mock_queue_store.list_companies_with_work.assert_called_once_with(3)

    async def test_company_failure_contained(self, use_case, mock_queue_store):
        """A failing company is reported; the others still drain."""
        mock_queue_store.list_companies_with_work.return_value = [1, 2]

        async def claim(company_id, limit, max_retries):
            if company_id == 1:
                raise DatabaseError("claim_recalc_batch", "disk full")
            return []

        mock_queue_store.claim_batch.side_effect = claim

        results = await use_case.execute_all()

        assert results[0].failures[0].details["company_id"] == 1
        assert results[1].failures == []

    async def test_nothing_to_do(self, use_case, mock_queue_store):
        mock_queue_store.list_companies_with_work.return_value = []
        assert await use_case.execute_all() == []
        mock_queue_store.claim_batch.assert_not_called()
