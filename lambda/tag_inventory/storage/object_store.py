"""
S3 object storage and cross-account sessions.

All S3 failures are classified into the named errors from
``utils.error_handling`` before they leave this module.
"""

import logging
from typing import Any, List, Optional, Tuple
from urllib.parse import urlparse

import boto3
from botocore.exceptions import ClientError

from utils.error_handling import translate_client_error

logger = logging.getLogger(__name__)


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """
    Split ``s3://bucket/key`` into (bucket, key).

    Raises:
        ValueError: If the URI has no bucket
    """
    parsed = urlparse(uri.strip())
    if parsed.scheme != "s3" or not parsed.netloc:
        raise ValueError(f"Not an S3 URI: '{uri}'")
    return parsed.netloc, parsed.path.lstrip("/")


def assume_role_session(
    role_arn: str,
    session_name: str,
    sts_client: Optional[Any] = None,
    region: Optional[str] = None,
) -> Any:
    """
    Create a boto3 session from temporary credentials for ``role_arn``.

    The session lives for one run only; callers must not cache it.
    """
    sts_client = sts_client or boto3.client("sts", region_name=region)
    try:
        response = sts_client.assume_role(RoleArn=role_arn, RoleSessionName=session_name[:64])
    except ClientError as e:
        raise translate_client_error("AssumeRole", e) from e

    credentials = response["Credentials"]
    logger.info(f"Assumed role {role_arn} until {credentials.get('Expiration')}")
    return boto3.Session(
        aws_access_key_id=credentials["AccessKeyId"],
        aws_secret_access_key=credentials["SecretAccessKey"],
        aws_session_token=credentials["SessionToken"],
        region_name=region,
    )


class ObjectStore:
    """Thin S3 wrapper exposing the operations the pipelines need."""

    def __init__(self, client: Optional[Any] = None, session: Optional[Any] = None):
        if client is None:
            client = (session or boto3.Session()).client("s3")
        self.client = client

    def put(self, bucket: str, key: str, body: bytes, content_type: str = "application/json") -> None:
        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
        except ClientError as e:
            raise translate_client_error("PutObject", e) from e
        logger.info(f"Wrote s3://{bucket}/{key} ({len(body)} bytes)")

    def get(self, bucket: str, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            raise translate_client_error("GetObject", e) from e
        return response["Body"].read()

    def copy(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        try:
            self.client.copy_object(
                CopySource={"Bucket": src_bucket, "Key": src_key},
                Bucket=dst_bucket,
                Key=dst_key,
            )
        except ClientError as e:
            raise translate_client_error("CopyObject", e) from e
        logger.info(f"Copied s3://{src_bucket}/{src_key} to s3://{dst_bucket}/{dst_key}")

    def delete(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            raise translate_client_error("DeleteObject", e) from e
        logger.info(f"Deleted s3://{bucket}/{key}")

    def delete_prefix(self, bucket: str, prefix: str) -> List[str]:
        """
        Delete every object under ``prefix``.

        Returns:
            The deleted keys
        """
        deleted: List[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                keys = [obj["Key"] for obj in page.get("Contents", [])]
                if not keys:
                    continue
                # DeleteObjects takes at most 1000 keys, the same as a list page
                self.client.delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
                )
                deleted.extend(keys)
        except ClientError as e:
            raise translate_client_error("DeleteObjects", e) from e
        logger.info(f"Deleted {len(deleted)} objects under s3://{bucket}/{prefix}")
        return deleted
