"""Spoke account tag aggregation: grouping, merging and the orchestration contract."""

from .grouper import (
    TagGroups,
    group_by_tag,
    merge_tag_groups,
    flatten_tag_groups,
    unflatten_tag_groups,
    count_resources,
)
from .contract import (
    SEARCH_RETRY_POLICY,
    StepRetryPolicy,
    StateMachineParameters,
    build_state_machine_definition,
    completion_message,
    output_key,
)
from .runner import AggregationRunner, serialize_tag_groups

__all__ = [
    "TagGroups",
    "group_by_tag",
    "merge_tag_groups",
    "flatten_tag_groups",
    "unflatten_tag_groups",
    "count_resources",
    "SEARCH_RETRY_POLICY",
    "StepRetryPolicy",
    "StateMachineParameters",
    "build_state_machine_definition",
    "completion_message",
    "output_key",
    "AggregationRunner",
    "serialize_tag_groups",
]
