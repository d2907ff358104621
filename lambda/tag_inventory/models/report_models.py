"""
Pydantic models for report query execution.

- QueryState: Athena query execution states
- ReportJob: One submitted query and its observed status
- ReportResult: Outcome of a report pipeline run
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class QueryState(str, Enum):
    """Athena query execution states"""
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (QueryState.SUCCEEDED, QueryState.FAILED, QueryState.CANCELLED)


class ReportJob(BaseModel):
    """A single query-engine execution"""
    step: str = Field(..., description="Pipeline step that submitted the query")
    query_string: str
    work_group: Optional[str] = None
    execution_id: Optional[str] = Field(None, description="Assigned on submit")
    state: Optional[QueryState] = None
    state_change_reason: Optional[str] = None
    error_message: Optional[str] = None
    manifest_location: Optional[str] = Field(
        None, description="Data manifest URI, only for statements producing rows"
    )
    poll_count: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state == QueryState.SUCCEEDED


class ReportResult(BaseModel):
    """Outcome of a successful report run"""
    date_string: str
    report_bucket: str
    report_key: str
    data_file_location: str
