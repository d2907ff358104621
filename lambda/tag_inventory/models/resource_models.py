"""
Pydantic models for discovered resources and tag groups.

This module defines the models exchanged between the aggregation steps:
- ResourceRecord: One resource returned by a Resource Explorer search
- PageResult: One page of search results plus the continuation token
- TagGroupRecord: The {TagName, TagValue, Resources} output record
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

UNTAGGED_TAG_NAME = "NoTag"
UNTAGGED_TAG_VALUE = "NoValue"


class Tag(BaseModel):
    """A single tag key/value pair"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = Field(..., alias="Key")
    value: str = Field("", alias="Value")


UNTAGGED = Tag(key=UNTAGGED_TAG_NAME, value=UNTAGGED_TAG_VALUE)


class ResourceRecord(BaseModel):
    """A discovered resource. Never modified after it is fetched."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    arn: str = Field(..., alias="Arn", description="Globally unique resource ARN")
    owning_account_id: str = Field("", alias="OwningAccountId")
    region: str = Field("", alias="Region")
    service: str = Field("", alias="Service")
    resource_type: str = Field("", alias="ResourceType")
    tags: List[Tag] = Field(default_factory=list, alias="Tags")

    @classmethod
    def from_search_item(cls, item: Dict[str, Any]) -> "ResourceRecord":
        """
        Build a record from a Resource Explorer ``Resources[]`` item.

        Tags arrive either as the ``tags`` entry of ``Properties`` (search API)
        or as a top level ``Tags`` list (records already serialized by a step).
        """
        tags = item.get("Tags")
        if tags is None:
            tags = []
            for prop in item.get("Properties") or []:
                if prop.get("Name") == "tags":
                    tags = prop.get("Data") or []
                    break
        return cls(
            arn=item["Arn"],
            owning_account_id=item.get("OwningAccountId", ""),
            region=item.get("Region", ""),
            service=item.get("Service", ""),
            resource_type=item.get("ResourceType", ""),
            tags=[Tag(key=t["Key"], value=t.get("Value") or "") for t in tags],
        )

    def effective_tags(self) -> List[Tag]:
        """Tags used for grouping; untagged resources get the NoTag/NoValue sentinel."""
        return list(self.tags) if self.tags else [UNTAGGED]

    def to_output(self) -> Dict[str, str]:
        """Serialize in the shape of the crawled table's resources struct."""
        return {
            "OwningAccountId": self.owning_account_id,
            "Region": self.region,
            "Service": self.service,
            "ResourceType": self.resource_type,
            "Arn": self.arn,
        }

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with tags, for passing a page between steps."""
        payload: Dict[str, Any] = self.to_output()
        payload["Tags"] = [{"Key": t.key, "Value": t.value} for t in self.tags]
        return payload


class SearchCount(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    complete: bool = Field(True, alias="Complete")
    total_resources: int = Field(0, alias="TotalResources")


class PageResult(BaseModel):
    """One page returned by the search adapter"""
    view_arn: Optional[str] = Field(None, description="View the page was read from")
    resources: List[ResourceRecord] = Field(default_factory=list)
    next_token: Optional[str] = Field(None, description="Present only while more pages remain")
    count: Optional[SearchCount] = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_token)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "ViewArn": self.view_arn,
            "Count": self.count.model_dump(by_alias=True) if self.count else None,
            "NextToken": self.next_token,
            "Resources": [r.to_payload() for r in self.resources],
        }


class TagGroupRecord(BaseModel):
    """Flattened tag group as written to the central bucket"""
    model_config = ConfigDict(populate_by_name=True)

    tag_name: str = Field(..., alias="TagName")
    tag_value: str = Field(..., alias="TagValue")
    resources: List[Any] = Field(default_factory=list, alias="Resources")

    def to_payload(self) -> Dict[str, Any]:
        return {
            "TagName": self.tag_name,
            "TagValue": self.tag_value,
            "Resources": [
                r.to_output() if isinstance(r, ResourceRecord) else r
                for r in self.resources
            ],
        }


class AggregationResult(BaseModel):
    """Summary of a completed spoke aggregation run"""
    bucket: str
    key: str
    pages: int = 0
    tag_groups: int = 0
    resources: int = 0
