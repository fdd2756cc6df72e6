"""
Query lifecycle tests for both backends.
"""

import dataclasses

import pytest

from confidential_marketplace.core.errors import (
    DatasetInactive,
    DatasetNotFound,
    DecryptionTimeout,
    InvalidInputSize,
    MissingQueryParameter,
    PriceTooLow,
    QueryFailed,
    QueryNotFound,
    QueryRefunded,
)
from confidential_marketplace.core.types import ExecutionMode, Query, QueryStatus, QueryType
from confidential_marketplace.runtime.lifecycle import QueryLifecycleManager, QueryTracker

from fakes import BUYER, FHE_ADDRESS, MIN_PRICE, PRICE, SAMPLE_DATA


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class TestMockLifecycle:

    @pytest.fixture
    def sleep(self):
        return SleepRecorder()

    @pytest.fixture
    def manager(self, mock_context, sleep):
        return QueryLifecycleManager(mock_context, sleep=sleep)

    @pytest.mark.asyncio
    async def test_upload_then_mean(self, manager, ledger, sleep):
        """Test mean of the sample data is 200 and completes on the first poll"""
        upload = await manager.upload_dataset("Ages", "", SAMPLE_DATA, PRICE)
        outcome = await manager.run_query(upload.dataset_id, QueryType.MEAN)

        assert outcome.result == 200
        assert outcome.attempts == 1
        assert sleep.calls == []
        assert outcome.query.status == QueryStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_count_above(self, manager, ledger):
        """Test COUNT_ABOVE 200 on the sample data is 2"""
        dataset_id = ledger.add_dataset()
        outcome = await manager.run_query(dataset_id, "count_above", 200)
        assert outcome.result == 2

    @pytest.mark.asyncio
    async def test_settlement_of_outcome(self, manager, ledger):
        dataset_id = ledger.add_dataset(price=1000 * MIN_PRICE)
        outcome = await manager.run_query(dataset_id, QueryType.VARIANCE)
        assert outcome.settlement.price == 1000 * MIN_PRICE
        assert outcome.settlement.provider_share == 950 * MIN_PRICE
        assert outcome.settlement.platform_share == 50 * MIN_PRICE

    @pytest.mark.asyncio
    async def test_oversized_upload_sends_nothing(self, manager, ledger):
        """Test 1001 values are rejected before any transaction"""
        with pytest.raises(InvalidInputSize):
            await manager.upload_dataset("Big", "", [1] * 1001, PRICE)
        assert ledger.sent == []

    @pytest.mark.asyncio
    async def test_low_price_sends_nothing(self, manager, ledger):
        with pytest.raises(PriceTooLow):
            await manager.upload_dataset("Cheap", "", SAMPLE_DATA, MIN_PRICE - 1)
        assert ledger.sent == []

    @pytest.mark.asyncio
    async def test_threshold_required(self, manager, ledger):
        dataset_id = ledger.add_dataset()
        with pytest.raises(MissingQueryParameter):
            await manager.submit_query(dataset_id, QueryType.COUNT_BELOW)
        assert ledger.sent == []

    @pytest.mark.asyncio
    async def test_dataset_checks(self, manager, ledger):
        inactive = ledger.add_dataset(active=False)
        with pytest.raises(DatasetInactive):
            await manager.submit_query(inactive, QueryType.MEAN)
        with pytest.raises(DatasetNotFound):
            await manager.submit_query(99, QueryType.MEAN)
        assert ledger.sent == []

    @pytest.mark.asyncio
    async def test_pays_current_dataset_price(self, manager, ledger):
        dataset_id = ledger.add_dataset(price=3 * PRICE)
        submission = await manager.submit_query(dataset_id, QueryType.MEAN)
        assert submission.price == 3 * PRICE
        assert ledger.sent[0]["value"] == hex(3 * PRICE)

    @pytest.mark.asyncio
    async def test_resolve_query_id_from_history(self, manager, ledger):
        """Test a missing event is resolved through the buyer's query list"""
        dataset_id = ledger.add_dataset()
        other = ledger.add_dataset()
        await manager.submit_query(other, QueryType.MEAN)
        ledger.emit_events = False

        submission = await manager.submit_query(dataset_id, QueryType.COUNT_ABOVE, 100)
        assert submission.query_id is None
        assert await manager.resolve_query_id(submission) == 2

    @pytest.mark.asyncio
    async def test_resolve_query_id_without_match(self, manager, ledger):
        dataset_id = ledger.add_dataset()
        ledger.emit_events = False
        submission = await manager.submit_query(dataset_id, QueryType.MEAN)
        ledger.state().buyer_queries[BUYER].clear()
        with pytest.raises(QueryNotFound):
            await manager.resolve_query_id(submission)

    @pytest.mark.asyncio
    async def test_transient_read_errors(self, manager, ledger, sleep):
        """Test read errors consume attempts without aborting the wait"""
        dataset_id = ledger.add_dataset()
        submission = await manager.submit_query(dataset_id, QueryType.MEAN)
        ledger.failing_query_reads = 2

        outcome = await manager.wait_for_result(submission.query_id)
        assert outcome.attempts == 3
        assert len(sleep.calls) == 2


class TestFHELifecycle:

    @pytest.fixture
    def sleep(self):
        return SleepRecorder()

    @pytest.fixture
    def manager(self, fhe_context, sleep):
        return QueryLifecycleManager(fhe_context, sleep=sleep)

    @pytest.mark.asyncio
    async def test_upload_and_decrypted_result(self, manager, fhe_ledger, encryptors):
        """Test encrypted upload and an asynchronous result"""
        upload = await manager.upload_dataset("Ages", "", SAMPLE_DATA, PRICE)
        assert fhe_ledger.state(FHE_ADDRESS).values[upload.dataset_id] == SAMPLE_DATA

        outcome = await manager.run_query(upload.dataset_id, QueryType.COUNT_ABOVE, 200)
        assert outcome.result == 2
        assert outcome.attempts == 3
        assert encryptors.created[0][2].encrypted == SAMPLE_DATA + [200]

    @pytest.mark.asyncio
    async def test_progress_reported_per_attempt(self, manager, fhe_ledger, fhe_context):
        """Test every poll attempt reports its number and the observed status"""
        dataset_id = fhe_ledger.add_dataset(FHE_ADDRESS)
        progress = []

        outcome = await manager.run_query(
            dataset_id, QueryType.MEAN,
            on_progress=lambda attempt, limit, status: progress.append((attempt, limit, status)),
        )

        limit = fhe_context.settings.poll_attempts
        assert progress == [
            (1, limit, QueryStatus.PROCESSING),
            (2, limit, QueryStatus.PROCESSING),
            (3, limit, QueryStatus.COMPLETED),
        ]
        assert outcome.attempts == 3

    @pytest.mark.asyncio
    async def test_progress_reported_on_failed_reads(self, manager, fhe_ledger):
        dataset_id = fhe_ledger.add_dataset(FHE_ADDRESS)
        submission = await manager.submit_query(dataset_id, QueryType.MEAN)
        fhe_ledger.failing_query_reads = 1
        progress = []

        await manager.wait_for_result(submission.query_id, on_progress=lambda *args: progress.append(args))

        assert [(attempt, status) for attempt, _, status in progress] == [
            (1, None),
            (2, QueryStatus.PROCESSING),
            (3, QueryStatus.PROCESSING),
            (4, QueryStatus.COMPLETED),
        ]

    @pytest.mark.asyncio
    async def test_failed_query(self, manager, fhe_ledger):
        fhe_ledger.fhe_outcome = QueryStatus.FAILED
        dataset_id = fhe_ledger.add_dataset(FHE_ADDRESS)
        with pytest.raises(QueryFailed):
            await manager.run_query(dataset_id, QueryType.MEAN)

    @pytest.mark.asyncio
    async def test_refunded_query(self, manager, fhe_ledger):
        fhe_ledger.fhe_outcome = QueryStatus.REFUNDED
        dataset_id = fhe_ledger.add_dataset(FHE_ADDRESS)
        with pytest.raises(QueryRefunded) as exc_info:
            await manager.run_query(dataset_id, QueryType.MEAN)
        assert exc_info.value.amount == PRICE

    @pytest.mark.asyncio
    async def test_decryption_timeout_within_budget(self, fhe_context, fhe_ledger, sleep):
        """Test the wait gives up after attempts * interval"""
        settings = dataclasses.replace(fhe_context.settings, poll_interval=2.0, poll_attempts=4)
        context = dataclasses.replace(fhe_context, settings=settings)
        manager = QueryLifecycleManager(context, sleep=sleep)
        fhe_ledger.fhe_reads_to_complete = 100
        dataset_id = fhe_ledger.add_dataset(FHE_ADDRESS)
        submission = await manager.submit_query(dataset_id, QueryType.MEAN)

        with pytest.raises(DecryptionTimeout) as exc_info:
            await manager.wait_for_result(submission.query_id)
        assert exc_info.value.attempts == 4
        assert exc_info.value.last_status == "PROCESSING"
        assert sum(sleep.calls) <= 4 * 2.0
        assert len(sleep.calls) == 3

    @pytest.mark.asyncio
    async def test_context_keeps_mode(self, fhe_context):
        manager = QueryLifecycleManager(fhe_context)
        assert manager.mode == ExecutionMode.FHE


class TestQueryTracker:

    def make_query(self, status):
        return Query(id=1, dataset_id=1, buyer=BUYER, query_type=QueryType.MEAN, status=status, price=1, result=5)

    def test_terminal_status_wins(self):
        """Test an observation leaving a terminal status is ignored"""
        tracker = QueryTracker(1)
        tracker.observe(self.make_query(QueryStatus.PENDING))
        tracker.observe(self.make_query(QueryStatus.COMPLETED))
        kept = tracker.observe(self.make_query(QueryStatus.FAILED))
        assert kept.status == QueryStatus.COMPLETED
        assert tracker.status == QueryStatus.COMPLETED

    def test_backwards_move_ignored(self):
        tracker = QueryTracker(1)
        tracker.observe(self.make_query(QueryStatus.PROCESSING))
        tracker.observe(self.make_query(QueryStatus.PENDING))
        assert tracker.status == QueryStatus.PROCESSING
