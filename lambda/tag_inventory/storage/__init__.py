"""Object storage, cross-account sessions and notifications."""

from .object_store import ObjectStore, assume_role_session, parse_s3_uri
from .notifier import Notifier

__all__ = [
    "ObjectStore",
    "Notifier",
    "assume_role_session",
    "parse_s3_uri",
]
