"""
Resource Explorer index bootstrap.

Turns on the index in every enabled region, promotes one region to the
aggregator index, and creates (or finds) the tag inventory view. Every step
treats "already in the desired state" as success, so the whole workflow can be
re-run with the same inputs.
"""

import logging
import uuid
from typing import Any, Callable, Dict, Iterable, Optional

import boto3
from botocore.exceptions import ClientError

from config import DEFAULT_VIEW_NAME
from observability.structured_logger import StructuredLogger
from utils.error_handling import (
    ConflictError,
    ResourceNotFoundError,
    TagInventoryAwsError,
    ViewNotFoundError,
    translate_client_error,
)

logger = logging.getLogger(__name__)


def view_name_from_arn(view_arn: str) -> str:
    """Extract the view name from ``arn:aws:resource-explorer-2:<region>:<account>:view/<name>/<id>``."""
    resource = view_arn.split(":", 5)[-1]
    parts = resource.split("/")
    return parts[1] if len(parts) > 1 else ""


class IndexBootstrapper:
    """Drives the resource index into the configured state."""

    def __init__(
        self,
        client_factory: Optional[Callable[[str], Any]] = None,
        structured_logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            client_factory: Returns a resource-explorer-2 client for a region
            structured_logger: Logger for bootstrap events
        """
        if client_factory is None:
            session = boto3.Session()

            def client_factory(region: str) -> Any:
                return session.client("resource-explorer-2", region_name=region)

        self._client_factory = client_factory
        self._clients: Dict[str, Any] = {}
        self.structured_logger = structured_logger or StructuredLogger()

    def _client(self, region: str) -> Any:
        if region not in self._clients:
            self._clients[region] = self._client_factory(region)
        return self._clients[region]

    def _call(self, region: str, operation: str, method: str, **params: Any) -> Dict[str, Any]:
        try:
            return getattr(self._client(region), method)(**params)
        except ClientError as e:
            raise translate_client_error(operation, e) from e

    def turn_on_index(self, region: str) -> str:
        """
        Create the local index in a region, or return the existing one.

        Returns:
            The index ARN
        """
        try:
            response = self._call(region, "CreateIndex", "create_index", ClientToken=str(uuid.uuid4()))
            logger.info(f"Turned on resource explorer index in region {region}")
            self.structured_logger.log_bootstrap("turn_on_index", region, "created", arn=response.get("Arn"))
            return response["Arn"]
        except ConflictError as e:
            logger.info(f"Index already exists in region {region}: {e.detail}")

        response = self._call(region, "GetIndex", "get_index")
        self.structured_logger.log_bootstrap("turn_on_index", region, "already_exists", arn=response.get("Arn"))
        return response["Arn"]

    def promote_aggregator(self, region: str) -> str:
        """Turn on the index in ``region`` and make it the aggregator index."""
        index_arn = self.turn_on_index(region)
        try:
            self._call(region, "UpdateIndexType", "update_index_type", Arn=index_arn, Type="AGGREGATOR")
            logger.info(f"Index {index_arn} in region {region} is now the aggregator index")
            self.structured_logger.log_bootstrap("promote_aggregator", region, "created", arn=index_arn)
        except ConflictError as e:
            logger.info(f"Index in region {region} is already an aggregator: {e.detail}")
            self.structured_logger.log_bootstrap("promote_aggregator", region, "already_exists", arn=index_arn)
        return index_arn

    def find_view_by_name(self, region: str, view_name: str) -> str:
        """
        Look up a view ARN by name.

        ListViews returns bare ARNs, so names are matched against the ARN's
        name segment.

        Raises:
            ViewNotFoundError: If no view in the region has that name
        """
        try:
            paginator = self._client(region).get_paginator("list_views")
            view_arn = None
            for page in paginator.paginate():
                view_arn = next(
                    (arn for arn in page.get("Views", []) if view_name_from_arn(arn) == view_name),
                    None,
                )
                if view_arn:
                    break
        except ClientError as e:
            raise translate_client_error("ListViews", e) from e

        if not view_arn:
            raise ViewNotFoundError(f"Could not find view with name '{view_name}' in region {region}")

        response = self._call(region, "GetView", "get_view", ViewArn=view_arn)
        found = response.get("View", {}).get("ViewArn", view_arn)
        logger.info(f"Found view {found} with name {view_name}")
        return found

    def ensure_view(self, region: str, view_name: str = DEFAULT_VIEW_NAME) -> str:
        """Create the view including tag properties, or find the existing one."""
        try:
            response = self._call(
                region,
                "CreateView",
                "create_view",
                ClientToken=str(uuid.uuid4()),
                ViewName=view_name,
                IncludedProperties=[{"Name": "tags"}],
            )
            view_arn = response["View"]["ViewArn"]
            logger.info(f"Created resource explorer view {view_arn}")
            self.structured_logger.log_bootstrap("ensure_view", region, "created", view_arn=view_arn)
            return view_arn
        except ConflictError:
            logger.info(f"View '{view_name}' already exists")

        view_arn = self.find_view_by_name(region, view_name)
        self.structured_logger.log_bootstrap("ensure_view", region, "already_exists", view_arn=view_arn)
        return view_arn

    def ensure_default_view(self, region: str, view_arn: str) -> bool:
        """
        Make ``view_arn`` the default view if the account has none.

        An existing default view is left alone. A failed association is logged
        and does not fail the bootstrap.

        Returns:
            True if the view was associated by this call
        """
        try:
            current = self._call(region, "GetDefaultView", "get_default_view").get("ViewArn")
        except ResourceNotFoundError:
            current = None

        if current:
            logger.info(f"{current} is already associated as the default view")
            self.structured_logger.log_bootstrap("ensure_default_view", region, "skipped", view_arn=current)
            return False

        logger.info(f"No default view specified, setting default view to {view_arn}")
        try:
            self._call(region, "AssociateDefaultView", "associate_default_view", ViewArn=view_arn)
        except TagInventoryAwsError as e:
            logger.warning(f"Problem associating view {view_arn} as default view: {e}")
            self.structured_logger.log_bootstrap(
                "ensure_default_view", region, "failed", view_arn=view_arn, error=str(e)
            )
            return False

        self.structured_logger.log_bootstrap("ensure_default_view", region, "associated", view_arn=view_arn)
        return True

    def bootstrap(
        self,
        enabled_regions: Iterable[str],
        aggregator_region: str,
        view_name: str = DEFAULT_VIEW_NAME,
    ) -> str:
        """
        Run the full bootstrap workflow.

        Returns:
            The ARN of the tag inventory view in the aggregator region
        """
        for region in enabled_regions:
            self.turn_on_index(region)
        self.promote_aggregator(aggregator_region)
        view_arn = self.ensure_view(aggregator_region, view_name)
        self.ensure_default_view(aggregator_region, view_arn)
        return view_arn
