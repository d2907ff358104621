"""
Orchestration contract for the spoke aggregation run.

    Initialize -> Search -> Merge -> HasMorePages? --yes--> Search
                                           |no
                                           v
                                      WriteFinal -> Notify -> end

The executor (Step Functions, or ``AggregationRunner`` in process) owns state
between steps and the retry policy. Only Search is retried; a merged page is
never redelivered to Merge. ``NextToken`` absent or null is the only loop exit.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Tuple

from utils.error_handling import ThrottledError

INITIALIZE = "Initialize"
SEARCH = "Search"
MERGE = "Merge"
PREPARE_NEXT = "PrepareNextPage"
HAS_MORE_PAGES = "HasMorePages"
WRITE_FINAL = "WriteFinal"
NOTIFY = "Notify"


@dataclass(frozen=True)
class StepRetryPolicy:
    """Retry rule attached to a step, in Amazon States Language terms."""
    error_equals: Tuple[str, ...]
    interval_seconds: float = 2.0
    max_attempts: int = 3
    backoff_rate: float = 2.0

    def matches(self, error: Exception) -> bool:
        # Matches by error name only, the way ErrorEquals is evaluated by Step Functions
        if type(error).__name__ in self.error_equals:
            return True
        return isinstance(error, ThrottledError) and "ThrottledError" in self.error_equals

    def to_asl(self) -> Dict[str, Any]:
        return {
            "ErrorEquals": list(self.error_equals),
            "IntervalSeconds": int(self.interval_seconds),
            "MaxAttempts": self.max_attempts,
            "BackoffRate": self.backoff_rate,
        }


SEARCH_RETRY_POLICY = StepRetryPolicy(
    error_equals=(
        "ThrottledError",
        "ReadTimeoutError",
        "ConnectTimeoutError",
        "ConnectionClosedError",
        "EndpointConnectionError",
        "Lambda.TooManyRequestsException",
        "Lambda.ServiceException",
        "States.Timeout",
    ),
)


def output_key(run_date: date, account_id: str) -> str:
    """Object key of a run's output; the ``d=`` prefix is the crawler partition."""
    return f"d={run_date.isoformat()}/{account_id}.json"


def completion_message(
    bucket: str,
    key: str,
    account_id: str,
    run_date: date,
    tag_groups: int,
    resources: int,
) -> Dict[str, Any]:
    return {
        "bucket": bucket,
        "key": key,
        "accountId": account_id,
        "partition": {"d": run_date.isoformat()},
        "tagGroups": tag_groups,
        "resources": resources,
    }


@dataclass
class StateMachineParameters:
    search_function_arn: str
    merge_function_arn: str
    central_role_arn: str
    central_bucket: str
    topic_arn: str
    max_results: int = 10
    search_retry: StepRetryPolicy = field(default=SEARCH_RETRY_POLICY)


def _lambda_task(function_arn: str, payload: Dict[str, Any], result_path: str, next_state: str) -> Dict[str, Any]:
    # Handlers return JSON strings, decoded here so later states can address fields
    return {
        "Type": "Task",
        "Resource": "arn:aws:states:::lambda:invoke",
        "Parameters": {"FunctionName": function_arn, "Payload": payload},
        "ResultSelector": {"Result.$": "States.StringToJson($.Payload)"},
        "ResultPath": result_path,
        "Next": next_state,
    }


def build_state_machine_definition(params: StateMachineParameters) -> Dict[str, Any]:
    """Render the contract as an Amazon States Language document."""
    search = _lambda_task(
        params.search_function_arn,
        {"MaxResults": params.max_results, "NextToken.$": "$.NextToken"},
        "$.Search",
        MERGE,
    )
    search["Retry"] = [params.search_retry.to_asl()]

    merge = _lambda_task(
        params.merge_function_arn,
        {
            "Payload": {"Result.$": "$.Search.Result"},
            "PreviousResults.$": "$.PreviousResults",
        },
        "$.Merge",
        PREPARE_NEXT,
    )

    object_key = "States.Format('d={}/{}.json', $.RunDate, $.AccountId)"

    return {
        "Comment": "Search the resource index page by page, merge tag groups, ship to the central account",
        "StartAt": INITIALIZE,
        "States": {
            INITIALIZE: {
                "Type": "Pass",
                "Parameters": {
                    "NextToken": None,
                    "PreviousResults": [],
                    "ResourceCount": 0,
                    "RunDate.$": "States.ArrayGetItem(States.StringSplit($$.Execution.StartTime, 'T'), 0)",
                    "AccountId.$": "States.ArrayGetItem(States.StringSplit($$.StateMachine.Id, ':'), 4)",
                },
                "Next": SEARCH,
            },
            SEARCH: search,
            MERGE: merge,
            PREPARE_NEXT: {
                "Type": "Pass",
                "Parameters": {
                    "NextToken.$": "$.Merge.Result.NextToken",
                    "PreviousResults.$": "$.Merge.Result.Results",
                    "ResourceCount.$": "$.Merge.Result.ResourceCount",
                    "RunDate.$": "$.RunDate",
                    "AccountId.$": "$.AccountId",
                },
                "Next": HAS_MORE_PAGES,
            },
            HAS_MORE_PAGES: {
                "Type": "Choice",
                "Choices": [{
                    "And": [
                        {"Variable": "$.NextToken", "IsPresent": True},
                        {"Variable": "$.NextToken", "IsNull": False},
                    ],
                    "Next": SEARCH,
                }],
                "Default": WRITE_FINAL,
            },
            WRITE_FINAL: {
                "Type": "Task",
                "Resource": "arn:aws:states:::aws-sdk:s3:putObject",
                "Credentials": {"RoleArn": params.central_role_arn},
                "Parameters": {
                    "Bucket": params.central_bucket,
                    "Key.$": object_key,
                    "Body.$": "States.JsonToString($.PreviousResults)",
                },
                "ResultPath": "$.WriteFinal",
                "Next": NOTIFY,
            },
            NOTIFY: {
                "Type": "Task",
                "Resource": "arn:aws:states:::sns:publish",
                "Parameters": {
                    "TopicArn": params.topic_arn,
                    "Message": {
                        "bucket": params.central_bucket,
                        "key.$": object_key,
                        "accountId.$": "$.AccountId",
                        "partition": {"d.$": "$.RunDate"},
                        "tagGroups.$": "States.ArrayLength($.PreviousResults)",
                        "resources.$": "$.ResourceCount",
                    },
                },
                "End": True,
            },
        },
    }
