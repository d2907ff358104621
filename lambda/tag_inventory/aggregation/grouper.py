"""
Tag grouping and result merging.

Tag groupings travel between steps as a list of single-key entries::

    [{"env": {"prod": [r1, r2]}}, {"team": {"data": [r3]}}]

Inside a run they are accumulated as ``{tag_name: {tag_value: [resources]}}``
and written out as ``{TagName, TagValue, Resources}`` records.

Merging appends without de-duplicating, so re-merging a page counts its
resources twice. The orchestrator only retries Search and never redelivers a
page that was already merged. Set ``dedupe_by_arn`` when the input cannot
guarantee that.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from models.resource_models import ResourceRecord, TagGroupRecord
from utils.error_handling import MalformedEntryError

logger = logging.getLogger(__name__)

TagGroups = Dict[str, Dict[str, List[Any]]]
TagEntry = Mapping[str, Mapping[str, Sequence[Any]]]


def group_by_tag(resources: Iterable[ResourceRecord]) -> List[Dict[str, Dict[str, List[ResourceRecord]]]]:
    """
    Group one page of resources into single-key tag entries.

    A resource with several tags appears once under each of them. Untagged
    resources are grouped under NoTag/NoValue. Entries keep first-seen order.
    """
    grouped: Dict[Tuple[str, str], List[ResourceRecord]] = {}
    for resource in resources:
        for tag in resource.effective_tags():
            grouped.setdefault((tag.key, tag.value), []).append(resource)

    return [{name: {value: members}} for (name, value), members in grouped.items()]


def _unpack_entry(entry: TagEntry) -> Tuple[str, str, List[Any]]:
    if not isinstance(entry, Mapping) or len(entry) != 1:
        raise MalformedEntryError(f"Expected a single tag name per entry, got {entry!r}")
    tag_name, by_value = next(iter(entry.items()))
    if not isinstance(by_value, Mapping) or len(by_value) != 1:
        raise MalformedEntryError(
            f"Expected a single tag value under tag '{tag_name}', got {by_value!r}"
        )
    tag_value, resources = next(iter(by_value.items()))
    if resources is None:
        resources = []
    return tag_name, tag_value, list(resources)


def _arn_of(resource: Any) -> Any:
    if isinstance(resource, ResourceRecord):
        return resource.arn
    if isinstance(resource, Mapping):
        return resource.get("Arn")
    return resource


def _dedupe(resources: List[Any]) -> List[Any]:
    seen = set()
    unique = []
    for resource in resources:
        arn = _arn_of(resource)
        if arn in seen:
            continue
        seen.add(arn)
        unique.append(resource)
    return unique


def merge_tag_groups(
    previous: Mapping[str, Mapping[str, Sequence[Any]]],
    entries: Iterable[TagEntry],
    dedupe_by_arn: bool = False,
) -> TagGroups:
    """
    Merge one page of tag entries into the accumulated groups.

    Neither argument is modified; a new accumulator is returned.

    Args:
        previous: Groups accumulated so far ({} at the start of a run)
        entries: Single-key {tagName: {tagValue: resources}} entries for one page
        dedupe_by_arn: Drop resources whose ARN is already in the group

    Returns:
        The updated accumulator

    Raises:
        MalformedEntryError: If an entry does not have the single-key shape
    """
    result: TagGroups = {
        name: {value: list(members) for value, members in by_value.items()}
        for name, by_value in previous.items()
    }

    for entry in entries:
        tag_name, tag_value, resources = _unpack_entry(entry)
        by_value = result.get(tag_name)
        if by_value is None:
            result[tag_name] = {tag_value: resources}
        elif tag_value in by_value:
            by_value[tag_value] = by_value[tag_value] + resources
        else:
            by_value[tag_value] = resources

        if dedupe_by_arn:
            result[tag_name][tag_value] = _dedupe(result[tag_name][tag_value])

    return result


def flatten_tag_groups(groups: Mapping[str, Mapping[str, Sequence[Any]]]) -> List[TagGroupRecord]:
    """One record per (tag name, tag value), in accumulator order."""
    return [
        TagGroupRecord(tag_name=name, tag_value=value, resources=list(members))
        for name, by_value in groups.items()
        for value, members in by_value.items()
    ]


def unflatten_tag_groups(records: Iterable[Any]) -> TagGroups:
    """
    Rebuild the accumulator from flattened records.

    Accepts TagGroupRecord instances or their {TagName, TagValue, Resources}
    dict form, as delivered back by the orchestrator in ``PreviousResults``.
    """
    groups: TagGroups = {}
    for record in records:
        if not isinstance(record, TagGroupRecord):
            record = TagGroupRecord.model_validate(record)
        by_value = groups.setdefault(record.tag_name, {})
        by_value[record.tag_value] = by_value.get(record.tag_value, []) + list(record.resources)
    return groups


def count_resources(groups: Mapping[str, Mapping[str, Sequence[Any]]]) -> int:
    """Number of distinct resource ARNs across all groups."""
    return len({
        _arn_of(resource)
        for by_value in groups.values()
        for members in by_value.values()
        for resource in members
    })
