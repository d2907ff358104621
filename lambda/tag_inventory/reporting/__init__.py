"""Central account report generation."""

from .query_runner import PollPolicy, QueryRunner
from .statements import ReportStatements
from .pipeline import ReportPipeline

__all__ = [
    "PollPolicy",
    "QueryRunner",
    "ReportStatements",
    "ReportPipeline",
]
