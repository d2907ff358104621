"""
Error handling utilities for the tag inventory functions.

AWS errors are classified once, at the adapter boundary, into an ErrorKind and
re-raised as a named exception. The exception class name is what Step Functions
sees as the error name, so retry rules in the state machine match on it.
"""

import logging
import time
from enum import Enum
from typing import Callable, TypeVar, Optional
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ErrorKind(str, Enum):
    """Outcome categories for a failed AWS call"""
    CONFLICT = "conflict"
    THROTTLED = "throttled"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    OTHER = "other"


_CONFLICT_CODES = {'ConflictException'}
_THROTTLED_CODES = {
    'ThrottlingException',
    'Throttling',
    'TooManyRequestsException',
    'ProvisionedThroughputExceededException',
    'RequestLimitExceeded',
    'ServiceUnavailable',
    'ServiceQuotaExceededException',
    'InternalServerException',
    'InternalError',
    'RequestTimeout',
}
_NOT_FOUND_CODES = {'ResourceNotFoundException', 'NoSuchKey', 'NoSuchBucket'}
_ACCESS_DENIED_CODES = {
    'AccessDenied',
    'AccessDeniedException',
    'UnauthorizedOperation',
    'ExpiredToken',
    'ExpiredTokenException',
    'InvalidClientTokenId',
}


def get_error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


def classify_client_error(error: ClientError) -> ErrorKind:
    """
    Map a botocore ClientError onto an ErrorKind.

    Args:
        error: The ClientError raised by a boto3 client

    Returns:
        The ErrorKind for the error code, OTHER when the code is not recognised
    """
    code = get_error_code(error)
    if code in _CONFLICT_CODES:
        return ErrorKind.CONFLICT
    if code in _THROTTLED_CODES:
        return ErrorKind.THROTTLED
    if code in _NOT_FOUND_CODES:
        return ErrorKind.NOT_FOUND
    if code in _ACCESS_DENIED_CODES:
        return ErrorKind.ACCESS_DENIED
    return ErrorKind.OTHER


class TagInventoryAwsError(Exception):
    """Base class for classified AWS failures."""

    kind = ErrorKind.OTHER

    def __init__(self, operation: str, code: str, detail: str):
        self.operation = operation
        self.code = code
        self.detail = detail
        super().__init__(f"{operation} failed ({code}): {detail}")


class ConflictError(TagInventoryAwsError):
    """The resource already exists or is already in the requested state."""
    kind = ErrorKind.CONFLICT


class ThrottledError(TagInventoryAwsError):
    """Transient failure; the orchestrator's retry policy should retry the step."""
    kind = ErrorKind.THROTTLED


class ResourceNotFoundError(TagInventoryAwsError):
    kind = ErrorKind.NOT_FOUND


class AccessDeniedError(TagInventoryAwsError):
    """Permission or identity failure. Needs an operator, never retried."""
    kind = ErrorKind.ACCESS_DENIED

    def __init__(self, operation: str, code: str, detail: str):
        super().__init__(operation, code, detail)
        self.args = (
            f"{operation} was denied ({code}): {detail}. "
            "Check that the calling role has permission for this action, that any "
            "cross-account role trusts this account, and that credentials have not expired.",
        )


class AwsServiceError(TagInventoryAwsError):
    kind = ErrorKind.OTHER


_ERRORS_BY_KIND = {
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.THROTTLED: ThrottledError,
    ErrorKind.NOT_FOUND: ResourceNotFoundError,
    ErrorKind.ACCESS_DENIED: AccessDeniedError,
    ErrorKind.OTHER: AwsServiceError,
}


def translate_client_error(operation: str, error: ClientError) -> TagInventoryAwsError:
    """
    Build the named exception for a ClientError.

    The caller raises the result ``from`` the original error so the botocore
    response stays reachable through ``__cause__``.
    """
    kind = classify_client_error(error)
    message = error.response.get('Error', {}).get('Message', str(error))
    return _ERRORS_BY_KIND[kind](operation, get_error_code(error), message)


class MalformedEntryError(ValueError):
    """A tag grouping entry did not have the {tagName: {tagValue: resources}} shape."""
    pass


class ViewNotFoundError(Exception):
    """No Resource Explorer view with the requested name exists."""
    pass


class ReportStepFailedError(Exception):
    """A report query reached a terminal state other than SUCCEEDED."""

    def __init__(self, step: str, state: Optional[str], reason: Optional[str] = None):
        self.step = step
        self.state = state
        self.reason = reason
        message = f"Report step {step} did not succeed (state: {state})"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class QueryTimeoutError(Exception):
    """A query did not reach a terminal state within its poll budget."""

    def __init__(self, statement: str, attempts: int):
        self.statement = statement
        self.attempts = attempts
        super().__init__(
            f"Execution of the following statement took too long "
            f"({attempts} polls): {statement}"
        )


class ManifestError(Exception):
    """The query data manifest could not be resolved to a data file."""
    pass


def is_retryable_error(error: Exception) -> bool:
    """
    Classify if an error is retryable (throttling, network errors).

    Args:
        error: The exception to classify

    Returns:
        True if the error should trigger a retry, False otherwise
    """
    if isinstance(error, ThrottledError):
        return True
    if isinstance(error, TagInventoryAwsError):
        return False

    if isinstance(error, ClientError):
        return classify_client_error(error) == ErrorKind.THROTTLED

    # Check for common network/timeout errors
    error_message = str(error).lower()
    retryable_patterns = [
        'timeout',
        'timed out',
        'connection',
        'network',
        'temporarily unavailable',
    ]

    return any(pattern in error_message for pattern in retryable_patterns)


def retry_with_backoff(
    func: Callable[[], T],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retryable_check: Optional[Callable[[Exception], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Retry a function with exponential backoff.

    Only retries on errors classified as retryable (throttling, network errors).
    Everything else is re-raised untouched on the first attempt.

    Args:
        func: The function to execute (should take no arguments)
        max_retries: Maximum number of attempts (default: 3)
        initial_delay: Initial delay in seconds (default: 1.0)
        backoff_factor: Multiplier for delay on each retry (default: 2.0)
        retryable_check: Optional custom function to check if error is retryable
        sleep: Sleep function, replaceable in tests

    Returns:
        The result of the function call

    Raises:
        The last exception if all retries are exhausted
    """
    if retryable_check is None:
        retryable_check = is_retryable_error

    func_name = getattr(func, '__name__', repr(func))

    for attempt in range(max_retries):
        try:
            return func()
        except Exception as e:
            if not retryable_check(e):
                logger.warning(f"Non-retryable error encountered: {type(e).__name__}: {e}")
                raise

            if attempt == max_retries - 1:
                logger.error(f"All {max_retries} retry attempts exhausted for {func_name}")
                raise

            delay = initial_delay * (backoff_factor ** attempt)
            logger.warning(
                f"Retryable error on attempt {attempt + 1}/{max_retries}: "
                f"{type(e).__name__}: {e}. Retrying in {delay}s..."
            )
            sleep(delay)

    raise RuntimeError("Unexpected state in retry_with_backoff")
