import json
import logging
from typing import Any, Dict, List, Optional

import config
from config import SpokeSettings
from aggregation.grouper import (
    TagGroups,
    count_resources,
    flatten_tag_groups,
    group_by_tag,
    merge_tag_groups,
    unflatten_tag_groups,
)
from models.resource_models import ResourceRecord
from observability.structured_logger import StructuredLogger

logger = logging.getLogger()
logger.setLevel(config.log_level())


def _to_record(resource: Any) -> Any:
    if isinstance(resource, dict) and "Arn" in resource:
        return ResourceRecord.from_search_item(resource)
    return resource


def _search_result(event: Dict[str, Any]) -> Dict[str, Any]:
    return (event.get("Payload") or {}).get("Result") or {}


def page_entries(event: Dict[str, Any]) -> List[Dict[str, Dict[str, List[Any]]]]:
    """
    Tag entries for the page being merged.

    Uses ``Results.flatten`` when an upstream step already grouped the page,
    otherwise groups the raw search resources.
    """
    flattened = (event.get("Results") or {}).get("flatten")
    if flattened is not None:
        return [
            {name: {value: [_to_record(r) for r in resources or []] for value, resources in by_value.items()}}
            for entry in flattened
            for name, by_value in entry.items()
        ]
    resources = [_to_record(r) for r in _search_result(event).get("Resources") or []]
    return group_by_tag(resources)


def previous_groups(previous: Optional[Any]) -> TagGroups:
    """Accept the accumulator nested ({name: {value: [...]}}) or flattened ([{TagName, ...}])."""
    if not previous:
        return {}
    if isinstance(previous, list):
        previous = unflatten_tag_groups(previous)
    return {
        name: {value: [_to_record(r) for r in resources or []] for value, resources in by_value.items()}
        for name, by_value in previous.items()
    }


# Merge step of the spoke state machine.
# Event: {"Payload": {"Result": <search page>}, "PreviousResults": <accumulator>,
#         "Results": {"flatten": [...]}?}
# Returns a JSON string: {"NextToken", "Results": [{TagName, TagValue, Resources}], "ResourceCount"}
# ResourceCount is the number of distinct ARNs in Results, carried to the Notify message.
#
# Not idempotent: the state machine must never redeliver a page already merged.
def lambda_handler(event, context):
    event = event or {}
    structured_logger = StructuredLogger(correlation_id=getattr(context, "aws_request_id", None))
    logger.debug(f"Event: {json.dumps(event)}")

    settings = SpokeSettings.from_env()
    entries = page_entries(event)
    groups = merge_tag_groups(
        previous_groups(event.get("PreviousResults")),
        entries,
        dedupe_by_arn=settings.dedupe_by_arn,
    )
    records = flatten_tag_groups(groups)
    next_token = _search_result(event).get("NextToken")

    structured_logger.log_merge(
        entry_count=len(entries),
        tag_group_count=len(records),
        has_next_token=bool(next_token),
    )
    return json.dumps({
        "NextToken": next_token,
        "Results": [record.to_payload() for record in records],
        "ResourceCount": count_resources(groups),
    })
