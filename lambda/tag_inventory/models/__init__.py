"""
Models package for the tag inventory functions.

Exports all model classes for easy importing.
"""

from .resource_models import (
    Tag,
    ResourceRecord,
    SearchCount,
    PageResult,
    TagGroupRecord,
    AggregationResult,
    UNTAGGED,
    UNTAGGED_TAG_NAME,
    UNTAGGED_TAG_VALUE,
)
from .report_models import QueryState, ReportJob, ReportResult

__all__ = [
    "Tag",
    "ResourceRecord",
    "SearchCount",
    "PageResult",
    "TagGroupRecord",
    "AggregationResult",
    "UNTAGGED",
    "UNTAGGED_TAG_NAME",
    "UNTAGGED_TAG_VALUE",
    "QueryState",
    "ReportJob",
    "ReportResult",
]
