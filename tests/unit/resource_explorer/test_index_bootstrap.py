"""
Unit tests for IndexBootstrapper.

Tests cover:
- Turning on an index, and finding it when it already exists
- Aggregator promotion when the index is already an aggregator
- View creation and lookup by name on conflict
- Default view association
- Re-running the whole bootstrap
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock
from botocore.exceptions import ClientError

# Add lambda directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "lambda" / "tag_inventory"))

from resource_explorer.index_bootstrap import IndexBootstrapper, view_name_from_arn
from utils.error_handling import AccessDeniedError, ViewNotFoundError

INDEX_ARN = "arn:aws:resource-explorer-2:us-east-1:111122223333:index/1234"
VIEW_ARN = "arn:aws:resource-explorer-2:us-east-1:111122223333:view/tag-inventory-all-resources/abcd"
OTHER_VIEW_ARN = "arn:aws:resource-explorer-2:us-east-1:111122223333:view/other/ef01"


def _client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": f"{code} message"}}, operation)


def _paginator(*pages):
    paginator = Mock()
    paginator.paginate.return_value = list(pages)
    return paginator


@pytest.fixture
def mock_client():
    client = Mock()
    client.create_index.return_value = {"Arn": INDEX_ARN, "State": "CREATING"}
    client.get_index.return_value = {"Arn": INDEX_ARN, "Type": "LOCAL"}
    client.create_view.return_value = {"View": {"ViewArn": VIEW_ARN}}
    client.get_view.return_value = {"View": {"ViewArn": VIEW_ARN}}
    client.get_default_view.return_value = {}
    client.get_paginator.return_value = _paginator({"Views": [OTHER_VIEW_ARN, VIEW_ARN]})
    return client


@pytest.fixture
def bootstrapper(mock_client):
    return IndexBootstrapper(client_factory=lambda region: mock_client)


def test_view_name_from_arn():
    assert view_name_from_arn(VIEW_ARN) == "tag-inventory-all-resources"
    assert view_name_from_arn("not-an-arn") == ""


def test_turn_on_index_creates(bootstrapper, mock_client):
    assert bootstrapper.turn_on_index("us-east-1") == INDEX_ARN
    mock_client.get_index.assert_not_called()


def test_turn_on_index_existing_returns_current_arn(bootstrapper, mock_client):
    mock_client.create_index.side_effect = _client_error("ConflictException", "CreateIndex")

    assert bootstrapper.turn_on_index("us-east-1") == INDEX_ARN
    mock_client.get_index.assert_called_once()


def test_turn_on_index_access_denied_propagates(bootstrapper, mock_client):
    mock_client.create_index.side_effect = _client_error("AccessDeniedException", "CreateIndex")

    with pytest.raises(AccessDeniedError):
        bootstrapper.turn_on_index("us-east-1")


def test_promote_aggregator_conflict_is_success(bootstrapper, mock_client):
    mock_client.update_index_type.side_effect = _client_error("ConflictException", "UpdateIndexType")

    assert bootstrapper.promote_aggregator("us-east-1") == INDEX_ARN
    mock_client.update_index_type.assert_called_once_with(Arn=INDEX_ARN, Type="AGGREGATOR")


def test_ensure_view_creates_with_tags_property(bootstrapper, mock_client):
    assert bootstrapper.ensure_view("us-east-1", "tag-inventory-all-resources") == VIEW_ARN

    kwargs = mock_client.create_view.call_args[1]
    assert kwargs["ViewName"] == "tag-inventory-all-resources"
    assert kwargs["IncludedProperties"] == [{"Name": "tags"}]


def test_ensure_view_conflict_finds_existing_view(bootstrapper, mock_client):
    mock_client.create_view.side_effect = _client_error("ConflictException", "CreateView")

    assert bootstrapper.ensure_view("us-east-1", "tag-inventory-all-resources") == VIEW_ARN
    mock_client.get_view.assert_called_once_with(ViewArn=VIEW_ARN)


def test_find_view_by_name_missing(bootstrapper, mock_client):
    mock_client.get_paginator.return_value = _paginator({"Views": [OTHER_VIEW_ARN]}, {"Views": []})

    with pytest.raises(ViewNotFoundError):
        bootstrapper.find_view_by_name("us-east-1", "tag-inventory-all-resources")


def test_ensure_default_view_associates_when_none(bootstrapper, mock_client):
    mock_client.get_default_view.side_effect = _client_error("ResourceNotFoundException", "GetDefaultView")

    assert bootstrapper.ensure_default_view("us-east-1", VIEW_ARN) is True
    mock_client.associate_default_view.assert_called_once_with(ViewArn=VIEW_ARN)


def test_ensure_default_view_keeps_existing_default(bootstrapper, mock_client):
    mock_client.get_default_view.return_value = {"ViewArn": OTHER_VIEW_ARN}

    assert bootstrapper.ensure_default_view("us-east-1", VIEW_ARN) is False
    mock_client.associate_default_view.assert_not_called()


def test_ensure_default_view_failure_does_not_raise(bootstrapper, mock_client):
    mock_client.associate_default_view.side_effect = _client_error("AccessDeniedException", "AssociateDefaultView")

    assert bootstrapper.ensure_default_view("us-east-1", VIEW_ARN) is False


def test_bootstrap_twice_returns_same_view(mock_client):
    bootstrapper = IndexBootstrapper(client_factory=lambda region: mock_client)

    first = bootstrapper.bootstrap(["us-east-1", "eu-west-1"], "us-east-1")

    # Second run: everything already exists
    mock_client.create_index.side_effect = _client_error("ConflictException", "CreateIndex")
    mock_client.update_index_type.side_effect = _client_error("ConflictException", "UpdateIndexType")
    mock_client.create_view.side_effect = _client_error("ConflictException", "CreateView")
    mock_client.get_default_view.return_value = {"ViewArn": VIEW_ARN}

    second = bootstrapper.bootstrap(["us-east-1", "eu-west-1"], "us-east-1")

    assert first == second == VIEW_ARN


def test_clients_are_built_once_per_region(mock_client):
    factory = Mock(return_value=mock_client)
    bootstrapper = IndexBootstrapper(client_factory=factory)

    bootstrapper.bootstrap(["us-east-1", "eu-west-1"], "us-east-1")

    assert sorted(c[0][0] for c in factory.call_args_list) == ["eu-west-1", "us-east-1"]
