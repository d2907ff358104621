import json
import logging

import config
from config import SpokeSettings
from observability.structured_logger import StructuredLogger
from resource_explorer.search_adapter import ResourceSearchAdapter

logger = logging.getLogger()
logger.setLevel(config.log_level())

_search_adapter = None


def get_search_adapter(settings: SpokeSettings) -> ResourceSearchAdapter:
    """Build the adapter once per container; the view never changes between invocations."""
    global _search_adapter
    if _search_adapter is None or _search_adapter.view_arn != settings.view_arn:
        _search_adapter = ResourceSearchAdapter(settings.view_arn)
    return _search_adapter


# Search step of the spoke state machine: one page per invocation.
# Event: {"MaxResults": int?, "NextToken": str?}
# Returns a JSON string: {"ViewArn", "Count", "NextToken", "Resources"}
def lambda_handler(event, context):
    event = event or {}
    structured_logger = StructuredLogger(correlation_id=getattr(context, "aws_request_id", None))
    logger.info(f"Event: {json.dumps(event)}")

    settings = SpokeSettings.from_env()
    settings.validate_search()

    max_results = event.get("MaxResults") or settings.max_results
    try:
        page = get_search_adapter(settings).search(
            max_results=max_results,
            next_token=event.get("NextToken"),
        )
    except Exception as e:
        # Re-raised unchanged so the state machine retry rules see the error name
        structured_logger.log_error(error_type=type(e).__name__, error_message=str(e), step="Search")
        raise

    structured_logger.log_search_page(
        view_arn=page.view_arn,
        resource_count=len(page.resources),
        has_next_token=page.has_more,
    )
    return json.dumps(page.to_payload())
