"""
Unit tests for ReportPipeline.

Tests cover:
- Step order and gating on the previous step
- Max date fallback vs failure
- Manifest resolution
- Copy and cleanup of the result objects
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock

# Add lambda directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "lambda" / "tag_inventory"))

from models.report_models import QueryState, ReportJob
from reporting.pipeline import (
    CREATE_CSV_RESULT_TABLE,
    CREATE_EXTERNAL_TABLE,
    CREATE_LATEST_VIEW,
    CREATE_TAGGED_VS_UNTAGGED_VIEW,
    CREATE_TOP_TEN_VIEW,
    DROP_SCRATCH_TABLE,
    LOAD_PARTITIONS,
    READ_MAX_DATE,
    UPDATE_EXTERNAL_TABLE,
    ReportPipeline,
)
from reporting.statements import ReportStatements
from utils.error_handling import ManifestError, ReportStepFailedError

MANIFEST = "s3://athena-bucket/results/q-csv-manifest.csv"
DATA_FILE = "s3://report-bucket/2024-03-09/20240309_000000_00001_abcd.gz"


class FakeQueryRunner:
    """Records submitted steps; every step succeeds unless listed in ``states``."""

    def __init__(self, states=None, max_date="2024-03-09"):
        self.states = states or {}
        self.max_date = max_date
        self.steps = []

    def execute(self, step, statement):
        self.steps.append(step)
        job = ReportJob(
            step=step,
            query_string=statement,
            execution_id=f"q-{len(self.steps)}",
            state=self.states.get(step, QueryState.SUCCEEDED),
        )
        if job.state == QueryState.FAILED:
            job.error_message = f"{step} failed"
        if step == CREATE_CSV_RESULT_TABLE:
            job.manifest_location = MANIFEST
        return job

    def first_value(self, job):
        return self.max_date


@pytest.fixture
def statements():
    return ReportStatements(
        database="tag_inventory_db",
        source_table="tag_inventory_crawled",
        athena_bucket="athena-bucket",
        report_bucket="report-bucket",
    )


@pytest.fixture
def object_store():
    store = Mock()
    store.get.return_value = f"{DATA_FILE}\n".encode("utf-8")
    return store


def _pipeline(runner, statements, object_store, **kwargs):
    return ReportPipeline(
        runner=runner,
        statements=statements,
        object_store=object_store,
        report_bucket="report-bucket",
        today=lambda: "2024-04-01",
        **kwargs
    )


def test_run_executes_steps_in_order(statements, object_store):
    runner = FakeQueryRunner()

    result = _pipeline(runner, statements, object_store).run()

    assert runner.steps == [
        DROP_SCRATCH_TABLE,
        LOAD_PARTITIONS,
        CREATE_EXTERNAL_TABLE,
        UPDATE_EXTERNAL_TABLE,
        CREATE_LATEST_VIEW,
        CREATE_TOP_TEN_VIEW,
        CREATE_TAGGED_VS_UNTAGGED_VIEW,
        READ_MAX_DATE,
        CREATE_CSV_RESULT_TABLE,
        DROP_SCRATCH_TABLE,
    ]
    assert result.date_string == "2024-03-09"
    assert result.report_key == "report-2024-03-09.csv.gz"
    assert result.data_file_location == DATA_FILE


def test_run_copies_and_cleans_up(statements, object_store):
    _pipeline(FakeQueryRunner(), statements, object_store).run()

    object_store.get.assert_called_once_with("athena-bucket", "results/q-csv-manifest.csv")
    object_store.copy.assert_called_once_with(
        "report-bucket", "2024-03-09/20240309_000000_00001_abcd.gz",
        "report-bucket", "report-2024-03-09.csv.gz",
    )
    deleted = [c[0] for c in object_store.delete.call_args_list]
    assert ("report-bucket", "2024-03-09/20240309_000000_00001_abcd.gz") in deleted
    assert ("athena-bucket", "results/q-csv-manifest.csv") in deleted
    object_store.delete_prefix.assert_called_once_with("report-bucket", "2024-03-09/")


def test_failed_step_stops_pipeline(statements, object_store):
    runner = FakeQueryRunner(states={CREATE_EXTERNAL_TABLE: QueryState.FAILED})

    with pytest.raises(ReportStepFailedError) as exc_info:
        _pipeline(runner, statements, object_store).run()

    assert exc_info.value.step == CREATE_EXTERNAL_TABLE
    assert exc_info.value.state == "FAILED"
    assert CREATE_LATEST_VIEW not in runner.steps
    object_store.copy.assert_not_called()


def test_cancelled_step_stops_pipeline(statements, object_store):
    runner = FakeQueryRunner(states={LOAD_PARTITIONS: QueryState.CANCELLED})

    with pytest.raises(ReportStepFailedError):
        _pipeline(runner, statements, object_store).run()

    assert runner.steps[-1] == LOAD_PARTITIONS


def test_leading_drop_failure_is_tolerated(statements, object_store):
    runner = FakeQueryRunner(states={DROP_SCRATCH_TABLE: QueryState.FAILED})
    pipeline = _pipeline(runner, statements, object_store)

    pipeline.drop_scratch_table(required=False)

    with pytest.raises(ReportStepFailedError):
        pipeline.drop_scratch_table(required=True)


def test_read_max_date_falls_back_to_today(statements, object_store):
    runner = FakeQueryRunner(max_date=None)

    assert _pipeline(runner, statements, object_store).read_max_date() == "2024-04-01"


def test_read_max_date_failure_raises(statements, object_store):
    runner = FakeQueryRunner(states={READ_MAX_DATE: QueryState.FAILED})

    with pytest.raises(ReportStepFailedError):
        _pipeline(runner, statements, object_store).read_max_date()


def test_extract_manifest_without_location(statements, object_store):
    job = ReportJob(step=CREATE_CSV_RESULT_TABLE, query_string="CREATE", execution_id="q-1",
                    state=QueryState.SUCCEEDED)

    with pytest.raises(ManifestError):
        _pipeline(FakeQueryRunner(), statements, object_store).extract_manifest(job)


def test_extract_manifest_empty_body(statements, object_store):
    object_store.get.return_value = b"\n"
    job = ReportJob(step=CREATE_CSV_RESULT_TABLE, query_string="CREATE", execution_id="q-1",
                    state=QueryState.SUCCEEDED, manifest_location=MANIFEST)

    with pytest.raises(ManifestError):
        _pipeline(FakeQueryRunner(), statements, object_store).extract_manifest(job)


def test_run_emits_report_metrics(statements, object_store):
    metrics_emitter = Mock()

    _pipeline(FakeQueryRunner(), statements, object_store, metrics_emitter=metrics_emitter).run()

    metrics_emitter.emit_count.assert_called_once_with("ReportGenerated")
    assert metrics_emitter.emit_duration.call_args[0][0] == "ReportDuration"
