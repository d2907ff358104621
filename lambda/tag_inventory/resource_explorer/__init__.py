"""Resource Explorer search and index bootstrap."""

from .search_adapter import ResourceSearchAdapter
from .index_bootstrap import IndexBootstrapper, view_name_from_arn

__all__ = [
    "ResourceSearchAdapter",
    "IndexBootstrapper",
    "view_name_from_arn",
]
