"""Utility functions for the tag inventory functions."""

import logging

# Create logger for utils module
logger = logging.getLogger(__name__)

from .error_handling import (
    ErrorKind,
    classify_client_error,
    translate_client_error,
    TagInventoryAwsError,
    ConflictError,
    ThrottledError,
    ResourceNotFoundError,
    AccessDeniedError,
    AwsServiceError,
    MalformedEntryError,
    ViewNotFoundError,
    ReportStepFailedError,
    QueryTimeoutError,
    ManifestError,
    is_retryable_error,
    retry_with_backoff,
)

__all__ = [
    'logger',
    'ErrorKind',
    'classify_client_error',
    'translate_client_error',
    'TagInventoryAwsError',
    'ConflictError',
    'ThrottledError',
    'ResourceNotFoundError',
    'AccessDeniedError',
    'AwsServiceError',
    'MalformedEntryError',
    'ViewNotFoundError',
    'ReportStepFailedError',
    'QueryTimeoutError',
    'ManifestError',
    'is_retryable_error',
    'retry_with_backoff',
]
