"""
Report query pipeline.

Runs the report statements strictly one after another, each gated on the
previous one succeeding, then turns the CSV table output into a stable
``report-<date>.csv.gz`` object in the report bucket.

Copy and cleanup are not atomic. Scratch data left by a crash is removed by
the next run, which starts by dropping the scratch table.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from models.report_models import ReportJob, ReportResult
from observability.metrics_emitter import MetricsEmitter
from observability.structured_logger import StructuredLogger
from reporting.query_runner import QueryRunner
from reporting.statements import ReportStatements
from storage.object_store import ObjectStore, parse_s3_uri
from utils.error_handling import ManifestError, ReportStepFailedError

logger = logging.getLogger(__name__)

DROP_SCRATCH_TABLE = "DropScratchTable"
LOAD_PARTITIONS = "LoadPartitions"
CREATE_EXTERNAL_TABLE = "CreateExternalTable"
UPDATE_EXTERNAL_TABLE = "UpdateExternalTable"
CREATE_LATEST_VIEW = "CreateLatestView"
CREATE_TOP_TEN_VIEW = "CreateTopTenView"
CREATE_TAGGED_VS_UNTAGGED_VIEW = "CreateTaggedVsUntaggedView"
READ_MAX_DATE = "ReadMaxDate"
CREATE_CSV_RESULT_TABLE = "CreateCsvResultTable"
EXTRACT_MANIFEST = "ExtractManifest"
COPY_RESULT_OBJECT = "CopyResultObject"
DELETE_SCRATCH_OBJECTS = "DeleteScratchObjects"


def _utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class ReportPipeline:
    """Generates the CSV report from the crawled tag inventory table."""

    def __init__(
        self,
        runner: QueryRunner,
        statements: ReportStatements,
        object_store: ObjectStore,
        report_bucket: str,
        structured_logger: Optional[StructuredLogger] = None,
        metrics_emitter: Optional[MetricsEmitter] = None,
        today: Callable[[], str] = _utc_today,
    ):
        self.runner = runner
        self.statements = statements
        self.object_store = object_store
        self.report_bucket = report_bucket
        self.structured_logger = structured_logger or StructuredLogger()
        self.metrics_emitter = metrics_emitter
        self._today = today

    def _run_required(self, step: str, statement: str) -> ReportJob:
        job = self.runner.execute(step, statement)
        if not job.succeeded:
            raise ReportStepFailedError(
                step,
                job.state.value if job.state else None,
                job.error_message or job.state_change_reason,
            )
        return job

    def drop_scratch_table(self, required: bool) -> None:
        job = self.runner.execute(DROP_SCRATCH_TABLE, self.statements.drop_csv_table())
        if job.succeeded:
            return
        if required:
            raise ReportStepFailedError(DROP_SCRATCH_TABLE, job.state.value, job.error_message)
        logger.warning(f"Could not drop scratch table before the run ({job.state.value}), continuing")

    def read_max_date(self) -> str:
        """
        Latest partition date in the source table.

        A failed query raises. A successful query with no value means no data
        has been crawled yet, and today's date is used instead.
        """
        job = self._run_required(READ_MAX_DATE, self.statements.max_date())
        value = self.runner.first_value(job)
        if value:
            logger.info(f"Date string: {value}")
            return value

        fallback = self._today()
        logger.warning(f"No partitions found in source table, using today's date {fallback}")
        return fallback

    def extract_manifest(self, job: ReportJob) -> str:
        """
        Resolve the data file written by the CSV table query.

        Returns:
            S3 URI of the data file

        Raises:
            ManifestError: If there is no manifest or it names no data file
        """
        if not job.manifest_location:
            raise ManifestError(f"Could not determine data file location: no manifest for {job.execution_id}")

        manifest_bucket, manifest_key = parse_s3_uri(job.manifest_location)
        logger.info(f"Retrieving manifest from: {manifest_bucket}/{manifest_key}")
        body = self.object_store.get(manifest_bucket, manifest_key).decode("utf-8")

        data_file_location = next((line.strip() for line in body.splitlines() if line.strip()), "")
        if not data_file_location:
            raise ManifestError(f"Could not determine data file location: '{body}'")
        logger.info(f"Data file located at: '{data_file_location}'")
        return data_file_location

    def run(self) -> ReportResult:
        start_time = time.time()

        self.drop_scratch_table(required=False)
        self._run_required(LOAD_PARTITIONS, self.statements.load_partitions())
        self._run_required(CREATE_EXTERNAL_TABLE, self.statements.create_external_table())
        self._run_required(UPDATE_EXTERNAL_TABLE, self.statements.update_external_table())
        self._run_required(CREATE_LATEST_VIEW, self.statements.create_latest_view())
        self._run_required(CREATE_TOP_TEN_VIEW, self.statements.create_top_ten_view())
        self._run_required(CREATE_TAGGED_VS_UNTAGGED_VIEW, self.statements.create_tagged_vs_untagged_view())

        date_string = self.read_max_date()
        csv_job = self._run_required(CREATE_CSV_RESULT_TABLE, self.statements.create_csv_table(date_string))

        data_file_location = self.extract_manifest(csv_job)
        data_bucket, data_key = parse_s3_uri(data_file_location)
        report_key = self.statements.report_key(date_string)
        self.object_store.copy(data_bucket, data_key, self.report_bucket, report_key)

        self.object_store.delete(data_bucket, data_key)
        manifest_bucket, manifest_key = parse_s3_uri(csv_job.manifest_location)
        self.object_store.delete(manifest_bucket, manifest_key)
        self.object_store.delete_prefix(self.report_bucket, self.statements.csv_location(date_string))

        self.drop_scratch_table(required=True)

        duration_ms = (time.time() - start_time) * 1000
        self.structured_logger.log_report_run(
            date_string=date_string,
            report_key=report_key,
            data_file_location=data_file_location,
            duration_ms=duration_ms,
        )
        if self.metrics_emitter:
            self.metrics_emitter.emit_count("ReportGenerated")
            self.metrics_emitter.emit_duration("ReportDuration", duration_ms)

        return ReportResult(
            date_string=date_string,
            report_bucket=self.report_bucket,
            report_key=report_key,
            data_file_location=data_file_location,
        )
