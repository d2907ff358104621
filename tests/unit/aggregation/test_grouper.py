"""
Unit tests for tag grouping and merging.

Tests cover:
- Grouping a page by tag, including untagged resources
- Merge concatenation, new tag names and new tag values
- Merge purity and optional ARN de-duplication
- Flatten/unflatten of the accumulator
- Malformed entries
"""

import copy
import pytest
import sys
from pathlib import Path

# Add lambda directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "lambda" / "tag_inventory"))

from aggregation.grouper import (
    count_resources,
    flatten_tag_groups,
    group_by_tag,
    merge_tag_groups,
    unflatten_tag_groups,
)
from models.resource_models import ResourceRecord, Tag
from utils.error_handling import MalformedEntryError


def _resource(arn, **tags):
    return ResourceRecord(
        arn=arn,
        owning_account_id="111122223333",
        region="us-east-1",
        service="s3",
        resource_type="s3:bucket",
        tags=[Tag(key=k, value=v) for k, v in tags.items()],
    )


class TestGroupByTag:
    def test_resource_appears_under_each_tag(self):
        r1 = _resource("arn:1", env="prod", team="data")
        r2 = _resource("arn:2", env="prod")

        entries = group_by_tag([r1, r2])

        assert entries == [
            {"env": {"prod": [r1, r2]}},
            {"team": {"data": [r1]}},
        ]

    def test_untagged_resource_grouped_under_sentinel(self):
        r1 = _resource("arn:1")

        assert group_by_tag([r1]) == [{"NoTag": {"NoValue": [r1]}}]

    def test_empty_page(self):
        assert group_by_tag([]) == []


class TestMergeTagGroups:
    def test_same_name_and_value_concatenates(self):
        previous = {"env": {"prod": ["a"]}}

        result = merge_tag_groups(previous, [{"env": {"prod": ["b"]}}])

        assert result == {"env": {"prod": ["a", "b"]}}

    def test_new_tag_name_is_inserted(self):
        result = merge_tag_groups({"env": {"prod": ["a"]}}, [{"team": {"data": ["c"]}}])

        assert result == {"env": {"prod": ["a"]}, "team": {"data": ["c"]}}

    def test_new_value_for_existing_name_is_kept(self):
        result = merge_tag_groups({"env": {"prod": ["a"]}}, [{"env": {"dev": ["d"]}}])

        assert result == {"env": {"prod": ["a"], "dev": ["d"]}}

    def test_empty_previous_and_entries(self):
        assert merge_tag_groups({}, []) == {}

    def test_inputs_are_not_modified(self):
        previous = {"env": {"prod": ["a"]}}
        entries = [{"env": {"prod": ["b"]}}, {"env": {"dev": ["c"]}}]
        previous_before = copy.deepcopy(previous)
        entries_before = copy.deepcopy(entries)

        merge_tag_groups(previous, entries)

        assert previous == previous_before
        assert entries == entries_before

    def test_merging_disjoint_pages_in_either_order_gives_same_groups(self):
        page_a = [{"env": {"prod": ["a"]}}]
        page_b = [{"team": {"data": ["b"]}}]

        ab = merge_tag_groups(merge_tag_groups({}, page_a), page_b)
        ba = merge_tag_groups(merge_tag_groups({}, page_b), page_a)

        assert ab == ba

    def test_remerging_a_page_duplicates_resources(self):
        page = [{"env": {"prod": ["a"]}}]

        result = merge_tag_groups(merge_tag_groups({}, page), page)

        assert result == {"env": {"prod": ["a", "a"]}}

    def test_dedupe_by_arn(self):
        r1 = _resource("arn:1", env="prod")
        page = [{"env": {"prod": [r1]}}]

        result = merge_tag_groups(merge_tag_groups({}, page), page, dedupe_by_arn=True)

        assert result == {"env": {"prod": [r1]}}

    def test_none_resources_treated_as_empty(self):
        result = merge_tag_groups({}, [{"env": {"prod": None}}])

        assert result == {"env": {"prod": []}}

    @pytest.mark.parametrize("entry", [
        {},
        {"env": {"prod": []}, "team": {"data": []}},
        {"env": {"prod": [], "dev": []}},
        {"env": ["not", "a", "mapping"]},
        "env",
    ])
    def test_malformed_entry_raises(self, entry):
        with pytest.raises(MalformedEntryError):
            merge_tag_groups({}, [entry])

    def test_malformed_entry_is_a_value_error(self):
        with pytest.raises(ValueError):
            merge_tag_groups({}, [{}])


class TestFlatten:
    def test_flatten_emits_every_name_value_pair(self):
        r1 = _resource("arn:1", env="prod")
        r2 = _resource("arn:2", env="dev")
        groups = {"env": {"prod": [r1], "dev": [r2]}}

        payloads = [record.to_payload() for record in flatten_tag_groups(groups)]

        assert [(p["TagName"], p["TagValue"]) for p in payloads] == [("env", "prod"), ("env", "dev")]
        assert payloads[0]["Resources"] == [{
            "OwningAccountId": "111122223333",
            "Region": "us-east-1",
            "Service": "s3",
            "ResourceType": "s3:bucket",
            "Arn": "arn:1",
        }]

    def test_unflatten_accepts_payload_dicts(self):
        groups = {"env": {"prod": [{"Arn": "arn:1"}], "dev": [{"Arn": "arn:2"}]}}
        payloads = [record.to_payload() for record in flatten_tag_groups(groups)]

        assert unflatten_tag_groups(payloads) == groups


def test_count_resources_counts_distinct_arns():
    r1 = _resource("arn:1", env="prod", team="data")
    r2 = _resource("arn:2", env="prod")
    groups = merge_tag_groups({}, group_by_tag([r1, r2]))

    assert count_resources(groups) == 2
