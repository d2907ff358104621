"""CloudWatch metrics emitter for tag inventory observability."""

import logging
from typing import Optional, Dict, Any
import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class MetricsEmitter:
    """Emits CloudWatch metrics for aggregation and report runs.

    Metric emission never fails the caller: a missing client or a
    PutMetricData error is logged and dropped.
    """

    def __init__(
        self,
        namespace: str = "TagInventory",
        region: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """Initialize the MetricsEmitter.

        Args:
            namespace: CloudWatch namespace for metrics (default: "TagInventory")
            region: AWS region for CloudWatch client (default: None, uses default region)
            client: Optional pre-built CloudWatch client
        """
        self.namespace = namespace
        if client is not None:
            self.cloudwatch = client
            return
        try:
            self.cloudwatch = boto3.client('cloudwatch', region_name=region)
            logger.info(f"MetricsEmitter initialized with namespace: {namespace}")
        except Exception as e:
            logger.error(f"Failed to initialize CloudWatch client: {e}")
            self.cloudwatch = None

    def _put(self, metric_name: str, value: float, unit: str, dimensions: Optional[Dict[str, str]]) -> None:
        if not self.cloudwatch:
            logger.warning(f"CloudWatch client not available, skipping metric: {metric_name}")
            return

        metric_data = {
            'MetricName': metric_name,
            'Value': value,
            'Unit': unit
        }
        if dimensions:
            metric_data['Dimensions'] = [
                {'Name': key, 'Value': val}
                for key, val in dimensions.items()
            ]

        try:
            self.cloudwatch.put_metric_data(
                Namespace=self.namespace,
                MetricData=[metric_data]
            )
        except ClientError as e:
            logger.error(f"Failed to emit metric {metric_name}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error emitting metric {metric_name}: {e}")

    def emit_duration(
        self,
        metric_name: str,
        duration_ms: float,
        dimensions: Optional[Dict[str, str]] = None
    ) -> None:
        """Emit a duration metric to CloudWatch.

        Args:
            metric_name: Name of the metric (e.g., "QueryExecutionDuration")
            duration_ms: Duration in milliseconds
            dimensions: Optional dimensions for the metric (e.g., {"Step": "LoadPartitions"})
        """
        self._put(metric_name, duration_ms, 'Milliseconds', dimensions)

    def emit_count(
        self,
        metric_name: str,
        value: int = 1,
        dimensions: Optional[Dict[str, str]] = None
    ) -> None:
        """Emit a count metric to CloudWatch.

        Args:
            metric_name: Name of the metric (e.g., "ResourcesDiscovered")
            value: Count value (default: 1)
            dimensions: Optional dimensions for the metric
        """
        self._put(metric_name, value, 'Count', dimensions)

    def emit_query_execution(self, step: str, succeeded: bool, duration_ms: float) -> None:
        """Emit success/failure count and duration for one report query."""
        dimensions = {'Step': step}
        if succeeded:
            self.emit_count('QueryExecutionSuccess', value=1, dimensions=dimensions)
        else:
            self.emit_count('QueryExecutionFailure', value=1, dimensions=dimensions)
        self.emit_duration('QueryExecutionDuration', duration_ms, dimensions=dimensions)

    def emit_aggregation_run(self, pages: int, tag_groups: int, resources: int) -> None:
        self.emit_count('SearchPages', value=pages)
        self.emit_count('TagGroups', value=tag_groups)
        self.emit_count('ResourcesDiscovered', value=resources)
