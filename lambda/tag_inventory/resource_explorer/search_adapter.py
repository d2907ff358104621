"""
Resource search adapter.

Wraps the Resource Explorer ``Search`` call: one invocation returns one page
of resources plus the continuation token. Failures are classified here and
raised as named errors; retrying is left to the orchestrator.
"""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from models.resource_models import PageResult, ResourceRecord, SearchCount
from utils.error_handling import translate_client_error

logger = logging.getLogger(__name__)

# Retries belong to the orchestrator's Search step policy
_CLIENT_CONFIG = Config(retries={"max_attempts": 1, "mode": "standard"})


class ResourceSearchAdapter:
    """Reads pages from a Resource Explorer view."""

    def __init__(self, view_arn: str, client: Optional[Any] = None, session: Optional[Any] = None):
        """
        Args:
            view_arn: ARN of the view to search; its region selects the endpoint
            client: Optional pre-built resource-explorer-2 client
            session: Optional boto3 session used to build the client
        """
        self.view_arn = view_arn
        if client is None:
            region = view_arn.split(":")[3]
            session = session or boto3.Session()
            client = session.client("resource-explorer-2", region_name=region, config=_CLIENT_CONFIG)
        self.client = client

    def search(
        self,
        max_results: int = 10,
        next_token: Optional[str] = None,
        query_string: str = "",
    ) -> PageResult:
        """
        Fetch one page.

        Args:
            max_results: Page size requested from the index
            next_token: Continuation token from the previous page, None for the first
            query_string: Resource Explorer query; empty matches everything

        Returns:
            PageResult whose next_token is None on the last page

        Raises:
            TagInventoryAwsError: Classified failure of the Search call
        """
        params = {
            "ViewArn": self.view_arn,
            "QueryString": query_string,
            "MaxResults": max_results,
        }
        if next_token:
            params["NextToken"] = next_token

        try:
            response = self.client.search(**params)
        except ClientError as e:
            raise translate_client_error("Search", e) from e

        count = response.get("Count")
        page = PageResult(
            view_arn=response.get("ViewArn", self.view_arn),
            resources=[ResourceRecord.from_search_item(item) for item in response.get("Resources", [])],
            next_token=response.get("NextToken") or None,
            count=SearchCount.model_validate(count) if count else None,
        )
        logger.debug(f"Search returned {len(page.resources)} resources, more pages: {page.has_more}")
        return page
