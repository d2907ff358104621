"""
Unit tests for ResourceSearchAdapter.
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock
from botocore.exceptions import ClientError

# Add lambda directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "lambda" / "tag_inventory"))

from resource_explorer.search_adapter import ResourceSearchAdapter
from utils.error_handling import AccessDeniedError, AwsServiceError, ThrottledError

VIEW_ARN = "arn:aws:resource-explorer-2:us-east-1:111122223333:view/tag-inventory-all-resources/abcd"


def _search_response(next_token=None):
    response = {
        "ViewArn": VIEW_ARN,
        "Count": {"Complete": True, "TotalResources": 2},
        "Resources": [
            {
                "Arn": "arn:aws:s3:::bucket-a",
                "OwningAccountId": "111122223333",
                "Region": "global",
                "Service": "s3",
                "ResourceType": "s3:bucket",
                "Properties": [
                    {"Name": "tags", "Data": [{"Key": "env", "Value": "prod"}]},
                ],
            },
            {
                "Arn": "arn:aws:ec2:us-east-1:111122223333:instance/i-1",
                "OwningAccountId": "111122223333",
                "Region": "us-east-1",
                "Service": "ec2",
                "ResourceType": "ec2:instance",
                "Properties": [],
            },
        ],
    }
    if next_token:
        response["NextToken"] = next_token
    return response


@pytest.fixture
def mock_client():
    return Mock()


def test_first_page_omits_next_token(mock_client):
    mock_client.search.return_value = _search_response(next_token="t1")
    adapter = ResourceSearchAdapter(VIEW_ARN, client=mock_client)

    page = adapter.search(max_results=10)

    mock_client.search.assert_called_once_with(ViewArn=VIEW_ARN, QueryString="", MaxResults=10)
    assert page.next_token == "t1"
    assert page.has_more is True
    assert page.count.total_resources == 2


def test_resources_and_tags_parsed(mock_client):
    mock_client.search.return_value = _search_response()
    adapter = ResourceSearchAdapter(VIEW_ARN, client=mock_client)

    page = adapter.search(max_results=10, next_token="t1")

    assert mock_client.search.call_args[1]["NextToken"] == "t1"
    assert page.next_token is None
    assert page.has_more is False
    first, second = page.resources
    assert first.arn == "arn:aws:s3:::bucket-a"
    assert [(t.key, t.value) for t in first.tags] == [("env", "prod")]
    assert second.tags == []
    assert [(t.key, t.value) for t in second.effective_tags()] == [("NoTag", "NoValue")]


def test_null_tag_value_is_parsed_as_empty(mock_client):
    response = _search_response()
    response["Resources"][0]["Properties"][0]["Data"] = [{"Key": "owner", "Value": None}, {"Key": "flag"}]
    mock_client.search.return_value = response
    adapter = ResourceSearchAdapter(VIEW_ARN, client=mock_client)

    page = adapter.search()

    assert [(t.key, t.value) for t in page.resources[0].tags] == [("owner", ""), ("flag", "")]


def test_page_payload_shape(mock_client):
    mock_client.search.return_value = _search_response()
    adapter = ResourceSearchAdapter(VIEW_ARN, client=mock_client)

    payload = adapter.search().to_payload()

    assert set(payload) == {"ViewArn", "Count", "NextToken", "Resources"}
    assert payload["Count"] == {"Complete": True, "TotalResources": 2}
    assert payload["Resources"][0]["Tags"] == [{"Key": "env", "Value": "prod"}]


@pytest.mark.parametrize("code,expected", [
    ("ThrottlingException", ThrottledError),
    ("AccessDeniedException", AccessDeniedError),
    ("ValidationException", AwsServiceError),
])
def test_client_errors_are_classified(mock_client, code, expected):
    mock_client.search.side_effect = ClientError({"Error": {"Code": code, "Message": "boom"}}, "Search")
    adapter = ResourceSearchAdapter(VIEW_ARN, client=mock_client)

    with pytest.raises(expected) as exc_info:
        adapter.search()

    assert exc_info.value.operation == "Search"
    assert isinstance(exc_info.value.__cause__, ClientError)
