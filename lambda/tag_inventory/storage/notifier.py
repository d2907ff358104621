"""SNS completion notifications."""

import json
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from utils.error_handling import translate_client_error

logger = logging.getLogger(__name__)


class Notifier:
    """Publishes run completion messages to an SNS topic."""

    def __init__(self, topic_arn: str, client: Optional[Any] = None, session: Optional[Any] = None):
        self.topic_arn = topic_arn
        if client is None:
            region = topic_arn.split(":")[3] if topic_arn.count(":") >= 5 else None
            client = (session or boto3.Session()).client("sns", region_name=region)
        self.client = client

    def publish(self, message: Dict[str, Any], subject: Optional[str] = None) -> str:
        """
        Publish ``message`` as JSON.

        Returns:
            The SNS message ID
        """
        params = {"TopicArn": self.topic_arn, "Message": json.dumps(message)}
        if subject:
            params["Subject"] = subject
        try:
            response = self.client.publish(**params)
        except ClientError as e:
            raise translate_client_error("Publish", e) from e
        logger.info(f"Published notification {response.get('MessageId')} to {self.topic_arn}")
        return response.get("MessageId", "")
