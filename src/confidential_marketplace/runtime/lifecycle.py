"""
Query lifecycle manager.

Drives uploads and queries end to end on one WorkflowContext:

    validate -> prepare inputs -> submit -> confirm -> (wait for result)

Usage:
    manager = QueryLifecycleManager(await session.resolve())
    upload = await manager.upload_dataset("Ages", "", [100, 200, 150], price)
    outcome = await manager.run_query(upload.dataset_id, QueryType.MEAN)
    print(outcome.result, outcome.settlement.provider_share)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Optional

from ..core.errors import (
    DatasetInactive,
    DecryptionTimeout,
    LedgerUnavailable,
    MissingQueryParameter,
    PollTimeout,
    QueryFailed,
    QueryNotFound,
    QueryRefunded,
    RPCError,
)
from ..core.settlement import split_price, validate_upload
from ..core.types import Query, QueryOutcome, QueryStatus, QuerySubmission, QueryType, UploadResult
from .context import WorkflowContext
from .polling import Sleep, poll_until

logger = logging.getLogger(__name__)

# (attempt, max_attempts, last observed status)
ProgressCallback = Callable[[int, int, Optional[QueryStatus]], None]


class QueryTracker:
    """
    Last observed status of one query.

    Observations that move backwards or leave a terminal status are
    logged and ignored.
    """

    def __init__(self, query_id: int):
        self.query_id = query_id
        self.status: Optional[QueryStatus] = None
        self.query: Optional[Query] = None

    def observe(self, query: Query) -> Query:
        if self.status is not None and not self.status.can_transition_to(query.status):
            logger.warning(
                f"Query {self.query_id}: ignoring status {query.status.name} "
                f"after {self.status.name}"
            )
            return self.query
        if query.status != self.status:
            logger.debug(f"Query {self.query_id}: {query.status.name}")
        self.status = query.status
        self.query = query
        return query


class QueryLifecycleManager:
    """Runs uploads and queries against the binding in ``context``."""

    def __init__(self, context: WorkflowContext, sleep: Sleep = asyncio.sleep):
        self.context = context
        self.client = context.client
        self.settings = context.settings
        self._sleep = sleep

    @property
    def mode(self):
        return self.context.mode

    async def upload_dataset(
        self,
        name: str,
        description: str,
        values: Iterable[Any],
        price: int,
    ) -> UploadResult:
        """
        Validate, prepare and upload a dataset.

        Raises:
            InvalidInputSize / ValueOutOfRange: Before anything is encrypted
            PriceTooLow / DatasetTooLarge: Before any transaction is sent
        """
        adapter = await self.client.get_adapter()
        items = adapter.validate(values)
        validate_upload(
            price,
            len(items),
            min_price=self.settings.min_price,
            max_data_size=self.settings.max_data_size,
        )

        inputs = await adapter.prepare_upload_inputs(items)
        result = await self.client.upload_dataset(name, description, inputs, price)
        logger.info(f"Dataset uploaded ({self.mode.value}): id={result.dataset_id}")
        return result

    async def submit_query(
        self,
        dataset_id: int,
        query_type: QueryType | int | str,
        parameter: Optional[int] = None,
    ) -> QuerySubmission:
        """
        Submit a paid query at the dataset's current price.

        Raises:
            MissingQueryParameter: Threshold query without a threshold
            DatasetNotFound / DatasetInactive: Dataset cannot be queried
        """
        query_type = QueryType.parse(query_type)
        if query_type.requires_parameter and parameter is None:
            raise MissingQueryParameter(query_type.name)
        if not query_type.requires_parameter:
            parameter = None

        dataset = await self.client.get_dataset(dataset_id)
        if not dataset.active:
            raise DatasetInactive(dataset_id)

        adapter = await self.client.get_adapter()
        prepared = await adapter.prepare_query_parameter(parameter)
        submission = await self.client.submit_query(
            dataset_id, query_type, prepared, dataset.price_per_query
        )
        logger.info(
            f"Query submitted ({self.mode.value}): id={submission.query_id} "
            f"dataset={dataset_id} type={query_type.name}"
        )
        return submission

    async def resolve_query_id(self, submission: QuerySubmission) -> int:
        """
        Query id of a submission, looked up when the event was not decoded.

        Picks the buyer's newest query on the same dataset with the same type.

        Raises:
            QueryNotFound: If no matching query exists
        """
        if submission.query_id is not None:
            return submission.query_id

        query_ids = await self.client.list_buyer_query_ids(submission.buyer)
        for query_id in sorted(query_ids, reverse=True):
            query = await self.client.get_query(query_id)
            if query.dataset_id == submission.dataset_id and query.query_type == submission.query_type:
                logger.info(f"Resolved query id {query_id} from buyer history")
                return query_id

        raise QueryNotFound(None, f"No query found for transaction {submission.tx.tx_hash}")

    async def wait_for_result(
        self,
        query_id: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> QueryOutcome:
        """
        Poll a query until it reaches a terminal status.

        A query that is already terminal returns on the first read.

        Args:
            query_id: Query to wait for
            on_progress: Called after every attempt, including failed reads,
                with the attempt number, the attempt limit and the last
                observed status

        Raises:
            QueryFailed: The backend failed the query
            QueryRefunded: The backend refunded the buyer
            DecryptionTimeout: The poll budget ran out
        """
        tracker = QueryTracker(query_id)
        max_attempts = self.settings.poll_attempts
        attempt = 0

        async def probe() -> Optional[Query]:
            nonlocal attempt
            attempt += 1
            try:
                query = tracker.observe(await self.client.get_query(query_id))
            finally:
                if on_progress is not None:
                    on_progress(attempt, max_attempts, tracker.status)
            return query if query.status.is_terminal else None

        try:
            polled = await poll_until(
                probe,
                interval=self.settings.poll_interval,
                max_attempts=max_attempts,
                retry_on=(RPCError, LedgerUnavailable, QueryNotFound),
                sleep=self._sleep,
                label=f"query {query_id}",
            )
        except PollTimeout as e:
            raise DecryptionTimeout(
                query_id,
                self.settings.poll_attempts,
                self.settings.poll_interval,
                tracker.status.name if tracker.status is not None else None,
            ) from e

        query = polled.value
        if query.status == QueryStatus.FAILED:
            raise QueryFailed(query_id)
        if query.status == QueryStatus.REFUNDED:
            raise QueryRefunded(query_id, query.price)

        logger.info(f"Query {query_id} completed after {polled.attempts} attempt(s)")
        return QueryOutcome(
            query=query,
            result=query.result if query.result is not None else 0,
            attempts=polled.attempts,
            settlement=split_price(query.price, self.settings.platform_fee_percent),
        )

    async def run_query(
        self,
        dataset_id: int,
        query_type: QueryType | int | str,
        parameter: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> QueryOutcome:
        """Submit a query and wait for its result."""
        submission = await self.submit_query(dataset_id, query_type, parameter)
        query_id = await self.resolve_query_id(submission)
        return await self.wait_for_result(query_id, on_progress=on_progress)
