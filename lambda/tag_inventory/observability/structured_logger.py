"""Structured JSON logger for tag inventory observability."""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Any

logger = logging.getLogger(__name__)


class StructuredLogger:
    """Provides structured JSON logging for tag inventory runs.

    This class emits structured JSON log entries with correlation IDs
    so that every step of one aggregation or report run can be found
    together in CloudWatch Logs Insights.
    """

    def __init__(self, correlation_id: Optional[str] = None):
        """Initialize the StructuredLogger.

        Args:
            correlation_id: Optional correlation ID for tracking related log entries.
                          If not provided, a new UUID will be generated.
        """
        self.correlation_id = correlation_id or str(uuid.uuid4())
        logger.debug(f"StructuredLogger initialized with correlation_id: {self.correlation_id}")

    def _log_structured(self, event_type: str, level: int = logging.INFO, **kwargs: Any) -> None:
        """Log a structured JSON event.

        Args:
            event_type: Type of event being logged (e.g., "search_page", "query_execution")
            level: Logging level for the entry
            **kwargs: Additional fields to include in the log entry
        """
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "correlation_id": self.correlation_id,
            "event_type": event_type,
            **kwargs
        }

        logger.log(level, json.dumps(log_entry, default=str))

    def log_search_page(
        self,
        view_arn: Optional[str],
        resource_count: int,
        has_next_token: bool,
        **additional_fields: Any
    ) -> None:
        """Log one page read from the resource search index.

        Args:
            view_arn: View the page was read from
            resource_count: Number of resources on the page
            has_next_token: Whether the index reported more pages
        """
        self._log_structured(
            event_type="search_page",
            view_arn=view_arn,
            resource_count=resource_count,
            has_next_token=has_next_token,
            **additional_fields
        )

    def log_merge(
        self,
        entry_count: int,
        tag_group_count: int,
        **additional_fields: Any
    ) -> None:
        """Log a merge of one page of tag groupings into the accumulator."""
        self._log_structured(
            event_type="merge",
            entry_count=entry_count,
            tag_group_count=tag_group_count,
            **additional_fields
        )

    def log_aggregation_run(
        self,
        account_id: Optional[str],
        pages: int,
        tag_groups: int,
        **additional_fields: Any
    ) -> None:
        self._log_structured(
            event_type="aggregation_run",
            account_id=account_id,
            pages=pages,
            tag_groups=tag_groups,
            **additional_fields
        )

    def log_query_execution(
        self,
        step: str,
        execution_id: Optional[str],
        state: Optional[str],
        duration_ms: float,
        **additional_fields: Any
    ) -> None:
        """Log a report query reaching a terminal state.

        Args:
            step: Report pipeline step name
            execution_id: Athena query execution ID
            state: Final query state
            duration_ms: Time from submit to terminal state in milliseconds
        """
        self._log_structured(
            event_type="query_execution",
            step=step,
            execution_id=execution_id,
            state=state,
            duration_ms=duration_ms,
            **additional_fields
        )

    def log_report_run(
        self,
        date_string: str,
        report_key: Optional[str] = None,
        **additional_fields: Any
    ) -> None:
        self._log_structured(
            event_type="report_run",
            date_string=date_string,
            report_key=report_key,
            **additional_fields
        )

    def log_bootstrap(
        self,
        action: str,
        region: str,
        outcome: str,
        **additional_fields: Any
    ) -> None:
        """Log one resource index bootstrap action.

        Args:
            action: Bootstrap action (e.g., "turn_on_index", "ensure_view")
            region: Region the action ran against
            outcome: "created", "already_exists", "associated", "skipped" or "failed"
        """
        self._log_structured(
            event_type="bootstrap",
            action=action,
            region=region,
            outcome=outcome,
            **additional_fields
        )

    def log_error(
        self,
        error_type: str,
        error_message: str,
        **additional_fields: Any
    ) -> None:
        """Log an error event.

        Args:
            error_type: Type of error (e.g., "ThrottledError", "ManifestError")
            error_message: Error message
            **additional_fields: Additional fields to include in the log entry
        """
        self._log_structured(
            event_type="error",
            level=logging.ERROR,
            error_type=error_type,
            error_message=error_message,
            **additional_fields
        )

    def get_correlation_id(self) -> str:
        return self.correlation_id

    def create_child_logger(self) -> "StructuredLogger":
        """Create a child logger with the same correlation ID.

        Returns:
            A new StructuredLogger instance with the same correlation ID
        """
        return StructuredLogger(correlation_id=self.correlation_id)
