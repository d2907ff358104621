import json
import logging
import os

import boto3

import config
from config import ReportSettings
from observability.metrics_emitter import MetricsEmitter
from observability.structured_logger import StructuredLogger
from reporting.pipeline import ReportPipeline
from reporting.query_runner import PollPolicy, QueryRunner
from reporting.statements import ReportStatements
from storage.object_store import ObjectStore

region = os.environ.get("AWS_REGION", None)

logger = logging.getLogger()
logger.setLevel(config.log_level())

session = boto3.Session()


def build_pipeline(settings: ReportSettings, structured_logger: StructuredLogger) -> ReportPipeline:
    metrics_emitter = MetricsEmitter(region=region)
    runner = QueryRunner(
        client=session.client("athena", region_name=region),
        work_group=settings.work_group,
        poll_policy=PollPolicy(
            interval_seconds=settings.poll_interval_seconds,
            max_attempts=settings.max_poll_attempts,
        ),
        structured_logger=structured_logger,
        metrics_emitter=metrics_emitter,
    )
    statements = ReportStatements(
        database=settings.database,
        source_table=settings.tag_inventory_table,
        athena_bucket=settings.athena_bucket,
        report_bucket=settings.report_bucket,
    )
    return ReportPipeline(
        runner=runner,
        statements=statements,
        object_store=ObjectStore(session=session),
        report_bucket=settings.report_bucket,
        structured_logger=structured_logger,
        metrics_emitter=metrics_emitter,
    )


# Scheduled report generation in the central account
def lambda_handler(event, context):
    structured_logger = StructuredLogger(correlation_id=getattr(context, "aws_request_id", None))
    logger.info(f"Event: {json.dumps(event)}")

    settings = ReportSettings.from_env()
    try:
        result = build_pipeline(settings, structured_logger).run()
    except Exception as e:
        structured_logger.log_error(error_type=type(e).__name__, error_message=str(e))
        raise

    return {
        "Status": "SUCCEEDED",
        "Report": f"s3://{result.report_bucket}/{result.report_key}",
        "DateString": result.date_string,
    }
