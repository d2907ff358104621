import json
import logging
import os

import boto3

import config
from config import SpokeSettings
from aggregation.runner import AggregationRunner
from observability.metrics_emitter import MetricsEmitter
from observability.structured_logger import StructuredLogger
from resource_explorer.search_adapter import ResourceSearchAdapter
from storage.notifier import Notifier
from storage.object_store import ObjectStore, assume_role_session

region = os.environ.get("AWS_REGION", None)

logger = logging.getLogger()
logger.setLevel(config.log_level())


def account_id_from_context(context) -> str:
    arn = getattr(context, "invoked_function_arn", "") or ""
    parts = arn.split(":")
    if len(parts) > 4 and parts[4]:
        return parts[4]
    return boto3.client("sts", region_name=region).get_caller_identity()["Account"]


def build_runner(settings: SpokeSettings, account_id: str, structured_logger: StructuredLogger) -> AggregationRunner:
    # Central account credentials are created per run and never reused
    central_session = assume_role_session(
        settings.central_role_arn,
        session_name=f"tag-inventory-{account_id}",
        region=region,
    )
    return AggregationRunner(
        search_adapter=ResourceSearchAdapter(settings.view_arn),
        object_store=ObjectStore(session=central_session),
        bucket=settings.central_bucket,
        account_id=account_id,
        notifier=Notifier(settings.topic_arn) if settings.topic_arn else None,
        max_results=settings.max_results,
        dedupe_by_arn=settings.dedupe_by_arn,
        structured_logger=structured_logger,
        metrics_emitter=MetricsEmitter(region=region),
    )


# Runs the whole spoke contract in one invocation, for accounts whose index
# fits in a single Lambda timeout. Event: {"PreviousResults"?, "NextToken"?}
def lambda_handler(event, context):
    event = event or {}
    structured_logger = StructuredLogger(correlation_id=getattr(context, "aws_request_id", None))
    logger.info(f"Event: {json.dumps(event)}")

    settings = SpokeSettings.from_env()
    settings.validate_search()
    for name, value in (("CENTRAL_BUCKET", settings.central_bucket), ("CENTRAL_ROLE_ARN", settings.central_role_arn)):
        if not value:
            raise ValueError(f"Environment variable {name} is not set")

    account_id = account_id_from_context(context)
    try:
        result = build_runner(settings, account_id, structured_logger).run(
            previous_results=event.get("PreviousResults"),
            next_token=event.get("NextToken"),
        )
    except Exception as e:
        structured_logger.log_error(error_type=type(e).__name__, error_message=str(e), account_id=account_id)
        raise

    return result.model_dump()
