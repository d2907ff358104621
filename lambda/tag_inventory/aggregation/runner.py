"""
In-process executor for the spoke aggregation contract.

Runs the same states as the Step Functions definition in
``aggregation.contract``: Search is retried according to its step policy,
Merge runs exactly once per page, and the final accumulator is written once
and announced once.
"""

import json
import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Tuple

from aggregation.contract import SEARCH_RETRY_POLICY, StepRetryPolicy, completion_message, output_key
from aggregation.grouper import (
    TagGroups,
    count_resources,
    flatten_tag_groups,
    group_by_tag,
    merge_tag_groups,
    unflatten_tag_groups,
)
from models.resource_models import AggregationResult, PageResult
from observability.metrics_emitter import MetricsEmitter
from observability.structured_logger import StructuredLogger
from resource_explorer.search_adapter import ResourceSearchAdapter
from storage.notifier import Notifier
from storage.object_store import ObjectStore
from utils.error_handling import retry_with_backoff

logger = logging.getLogger(__name__)

# Called with (accumulator, next_token) after every merged page
Checkpoint = Callable[[TagGroups, Optional[str]], None]


def serialize_tag_groups(groups: TagGroups) -> bytes:
    """Encode the accumulator as the JSON array written to the central bucket."""
    return json.dumps([record.to_payload() for record in flatten_tag_groups(groups)]).encode("utf-8")


class AggregationRunner:
    """Drives Search -> Merge until the index is exhausted, then writes and notifies."""

    def __init__(
        self,
        search_adapter: ResourceSearchAdapter,
        object_store: ObjectStore,
        bucket: str,
        account_id: str,
        notifier: Optional[Notifier] = None,
        max_results: int = 10,
        search_retry: StepRetryPolicy = SEARCH_RETRY_POLICY,
        dedupe_by_arn: bool = False,
        structured_logger: Optional[StructuredLogger] = None,
        metrics_emitter: Optional[MetricsEmitter] = None,
        checkpoint: Optional[Checkpoint] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.search_adapter = search_adapter
        self.object_store = object_store
        self.bucket = bucket
        self.account_id = account_id
        self.notifier = notifier
        self.max_results = max_results
        self.search_retry = search_retry
        self.dedupe_by_arn = dedupe_by_arn
        self.structured_logger = structured_logger or StructuredLogger()
        self.metrics_emitter = metrics_emitter
        self.checkpoint = checkpoint
        self._sleep = sleep

    def _search(self, next_token: Optional[str]) -> PageResult:
        def search_page() -> PageResult:
            return self.search_adapter.search(max_results=self.max_results, next_token=next_token)

        return retry_with_backoff(
            search_page,
            max_retries=self.search_retry.max_attempts + 1,
            initial_delay=self.search_retry.interval_seconds,
            backoff_factor=self.search_retry.backoff_rate,
            retryable_check=self.search_retry.matches,
            sleep=self._sleep,
        )

    def collect(
        self,
        previous_results: Optional[Any] = None,
        next_token: Optional[str] = None,
    ) -> Tuple[TagGroups, int]:
        """
        Run the Search/Merge loop.

        Args:
            previous_results: Accumulator to resume from, nested or flattened
            next_token: Token to resume from; None starts at the first page

        Returns:
            The final accumulator and the number of pages read
        """
        groups = _as_groups(previous_results)
        token = next_token
        pages = 0

        while True:
            page = self._search(token)
            pages += 1
            self.structured_logger.log_search_page(
                view_arn=page.view_arn,
                resource_count=len(page.resources),
                has_next_token=page.has_more,
                page=pages,
            )

            entries = group_by_tag(page.resources)
            groups = merge_tag_groups(groups, entries, dedupe_by_arn=self.dedupe_by_arn)
            self.structured_logger.log_merge(
                entry_count=len(entries),
                tag_group_count=sum(len(v) for v in groups.values()),
                page=pages,
            )

            token = page.next_token
            if self.checkpoint:
                self.checkpoint(groups, token)
            if not token:
                return groups, pages

    def run(
        self,
        previous_results: Optional[Any] = None,
        next_token: Optional[str] = None,
        run_date: Optional[date] = None,
    ) -> AggregationResult:
        """Execute the whole contract once. Any failure propagates unchanged."""
        run_date = run_date or datetime.now(timezone.utc).date()
        start_time = time.time()

        groups, pages = self.collect(previous_results, next_token)

        key = output_key(run_date, self.account_id)
        self.object_store.put(self.bucket, key, serialize_tag_groups(groups))

        tag_groups = sum(len(v) for v in groups.values())
        resources = count_resources(groups)
        if self.notifier:
            self.notifier.publish(
                completion_message(self.bucket, key, self.account_id, run_date, tag_groups, resources),
                subject="Tag inventory run complete",
            )

        duration_ms = (time.time() - start_time) * 1000
        self.structured_logger.log_aggregation_run(
            account_id=self.account_id,
            pages=pages,
            tag_groups=tag_groups,
            resources=resources,
            key=key,
            duration_ms=duration_ms,
        )
        if self.metrics_emitter:
            self.metrics_emitter.emit_aggregation_run(pages, tag_groups, resources)

        return AggregationResult(
            bucket=self.bucket,
            key=key,
            pages=pages,
            tag_groups=tag_groups,
            resources=resources,
        )


def _as_groups(previous_results: Optional[Any]) -> TagGroups:
    if not previous_results:
        return {}
    if isinstance(previous_results, dict):
        return previous_results
    return unflatten_tag_groups(previous_results)
