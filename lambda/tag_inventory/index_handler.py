import json
import logging

import config
from config import DEFAULT_VIEW_NAME
from observability.structured_logger import StructuredLogger
from resource_explorer.index_bootstrap import IndexBootstrapper

logger = logging.getLogger()
logger.setLevel(config.log_level())


def _regions(value) -> list:
    if isinstance(value, str):
        return [r.strip() for r in value.split(",") if r.strip()]
    return list(value or [])


# CloudFormation custom resource for the Resource Explorer index and view.
# Create/Update: turn on indexes, promote the aggregator, ensure the view.
# Delete: nothing is removed, indexes may be shared with other tooling.
def lambda_handler(event, context):
    logger.info(f"Event: {json.dumps(event)}")
    request_type = event["RequestType"]
    structured_logger = StructuredLogger(correlation_id=event.get("RequestId"))

    response = {
        "Status": "SUCCESS",
        "PhysicalResourceId": event.get("PhysicalResourceId"),
        "LogicalResourceId": event.get("LogicalResourceId"),
        "Data": {},
    }

    if request_type not in ("Create", "Update"):
        return response

    properties = event.get("ResourceProperties", {})
    enabled_regions = _regions(properties.get("ENABLED_REGIONS"))
    aggregator_region = properties["AGGREGATOR_INDEX_REGION"]
    view_name = properties.get("VIEW_NAME", DEFAULT_VIEW_NAME)

    bootstrapper = IndexBootstrapper(structured_logger=structured_logger)
    try:
        view_arn = bootstrapper.bootstrap(enabled_regions, aggregator_region, view_name)
    except Exception as e:
        structured_logger.log_error(error_type=type(e).__name__, error_message=str(e))
        raise

    response["PhysicalResourceId"] = view_arn
    response["Data"] = {"ViewArn": view_arn}
    return response
