"""Runtime settings resolved from Lambda environment variables."""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field

DEFAULT_MAX_RESULTS = 10
DEFAULT_VIEW_NAME = "tag-inventory-all-resources"
DEFAULT_POLL_INTERVAL_SECONDS = 3.0
DEFAULT_MAX_POLL_ATTEMPTS = 6

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "")
    if not value:
        raise ValueError(f"Environment variable {name} is not set")
    return value


def log_level(env: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if env is None else env
    return env.get("LOG_LEVEL", "INFO").upper()


class SpokeSettings(BaseModel):
    """Settings for the spoke account Search/Merge functions."""

    view_arn: str = ""
    max_results: int = Field(default=DEFAULT_MAX_RESULTS, ge=1, le=1000)
    central_bucket: str = ""
    central_role_arn: str = ""
    topic_arn: str = ""
    dedupe_by_arn: bool = False

    @property
    def view_region(self) -> str:
        """Region of the view, taken from its ARN."""
        parts = self.view_arn.split(":")
        if len(parts) < 4 or not parts[3]:
            raise ValueError(f"Cannot determine region from view ARN '{self.view_arn}'")
        return parts[3]

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "SpokeSettings":
        env = os.environ if env is None else env
        return cls(
            view_arn=env.get("VIEW_ARN", ""),
            max_results=int(env.get("MAX_RESULTS", DEFAULT_MAX_RESULTS)),
            central_bucket=env.get("CENTRAL_BUCKET", ""),
            central_role_arn=env.get("CENTRAL_ROLE_ARN", ""),
            topic_arn=env.get("TOPIC_ARN", ""),
            dedupe_by_arn=env.get("DEDUPE_BY_ARN", "false").lower() in _TRUE_VALUES,
        )

    def validate_search(self) -> None:
        if not self.view_arn:
            raise ValueError("Environment variable VIEW_ARN is not set")


class ReportSettings(BaseModel):
    """Settings for the central account report function."""

    database: str
    tag_inventory_table: str
    report_bucket: str
    athena_bucket: str
    work_group: str
    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, ge=0)
    max_poll_attempts: int = Field(default=DEFAULT_MAX_POLL_ATTEMPTS, ge=1)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ReportSettings":
        env = os.environ if env is None else env
        return cls(
            database=_require(env, "DATABASE"),
            tag_inventory_table=_require(env, "TAG_INVENTORY_TABLE"),
            report_bucket=_require(env, "REPORT_BUCKET"),
            athena_bucket=_require(env, "ATHENA_BUCKET"),
            work_group=_require(env, "WORKGROUP"),
            poll_interval_seconds=float(
                env.get("QUERY_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS)
            ),
            max_poll_attempts=int(env.get("QUERY_MAX_POLL_ATTEMPTS", DEFAULT_MAX_POLL_ATTEMPTS)),
        )
