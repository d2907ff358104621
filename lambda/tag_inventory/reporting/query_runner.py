"""
Athena query execution with a bounded poll budget.

A query is submitted, then polled at a fixed interval until it reaches a
terminal state. A query still QUEUED or RUNNING after ``max_attempts`` polls
is treated as a failure.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from botocore.exceptions import ClientError

from models.report_models import QueryState, ReportJob
from observability.metrics_emitter import MetricsEmitter
from observability.structured_logger import StructuredLogger
from utils.error_handling import QueryTimeoutError, translate_client_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollPolicy:
    interval_seconds: float = 3.0
    max_attempts: int = 6


class QueryRunner:
    """Runs one statement at a time against an Athena workgroup."""

    def __init__(
        self,
        client: Any,
        work_group: str,
        poll_policy: PollPolicy = PollPolicy(),
        structured_logger: Optional[StructuredLogger] = None,
        metrics_emitter: Optional[MetricsEmitter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.work_group = work_group
        self.poll_policy = poll_policy
        self.structured_logger = structured_logger or StructuredLogger()
        self.metrics_emitter = metrics_emitter
        self._sleep = sleep

    def submit(self, step: str, statement: str) -> ReportJob:
        logger.info(f"[{step}] Execute statement: {statement}")
        try:
            response = self.client.start_query_execution(QueryString=statement, WorkGroup=self.work_group)
        except ClientError as e:
            raise translate_client_error("StartQueryExecution", e) from e
        return ReportJob(
            step=step,
            query_string=statement,
            work_group=self.work_group,
            execution_id=response["QueryExecutionId"],
        )

    def refresh(self, job: ReportJob) -> ReportJob:
        """Read the current status of ``job`` into it."""
        try:
            response = self.client.get_query_execution(QueryExecutionId=job.execution_id)
        except ClientError as e:
            raise translate_client_error("GetQueryExecution", e) from e

        execution = response.get("QueryExecution", {})
        status = execution.get("Status", {})
        job.poll_count += 1
        job.state = QueryState(status["State"]) if status.get("State") else None
        job.state_change_reason = status.get("StateChangeReason")
        job.error_message = status.get("AthenaError", {}).get("ErrorMessage")
        job.manifest_location = execution.get("Statistics", {}).get("DataManifestLocation")
        return job

    def execute(self, step: str, statement: str) -> ReportJob:
        """
        Submit ``statement`` and wait for a terminal state.

        Returns:
            The job in its terminal state (SUCCEEDED, FAILED or CANCELLED)

        Raises:
            QueryTimeoutError: If the poll budget runs out first
        """
        start_time = time.time()
        job = self.submit(step, statement)

        for attempt in range(1, self.poll_policy.max_attempts + 1):
            self.refresh(job)
            if job.state is not None and job.state.is_terminal:
                self._record(job, start_time)
                return job
            logger.debug(f"[{step}] Query {job.execution_id} is {job.state}, poll {attempt}")
            if attempt < self.poll_policy.max_attempts:
                self._sleep(self.poll_policy.interval_seconds)

        self.structured_logger.log_error(
            error_type="QueryTimeoutError",
            error_message=f"Query {job.execution_id} still {job.state} after {job.poll_count} polls",
            step=step,
        )
        raise QueryTimeoutError(statement, job.poll_count)

    def _record(self, job: ReportJob, start_time: float) -> None:
        duration_ms = (time.time() - start_time) * 1000
        if job.succeeded:
            logger.info(f"[{job.step}] Query {job.execution_id} succeeded")
        else:
            logger.error(
                f"[{job.step}] Query {job.execution_id} ended {job.state.value}: "
                f"{job.error_message or job.state_change_reason}"
            )
        self.structured_logger.log_query_execution(
            step=job.step,
            execution_id=job.execution_id,
            state=job.state.value,
            duration_ms=duration_ms,
            polls=job.poll_count,
        )
        if self.metrics_emitter:
            self.metrics_emitter.emit_query_execution(job.step, job.succeeded, duration_ms)

    def first_value(self, job: ReportJob) -> Optional[str]:
        """
        First column of the first data row of a finished query.

        Row 0 of an Athena result set is the header.

        Returns:
            The value, or None when the result has no data row or the value is null
        """
        try:
            response = self.client.get_query_results(QueryExecutionId=job.execution_id, MaxResults=2)
        except ClientError as e:
            raise translate_client_error("GetQueryResults", e) from e

        rows = response.get("ResultSet", {}).get("Rows", [])
        if len(rows) < 2:
            return None
        data = rows[1].get("Data") or []
        if not data:
            return None
        return data[0].get("VarCharValue") or None
