"""Configuration models for the claim notifier.

ThrottlePolicy holds the cap/cooldown business rule; NotifierConfig is the
explicit configuration passed into the pipeline at construction.
"""

from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ThrottlePolicy(BaseModel):
    """Notification cap and cooldown window.

    Defaults reproduce the production rule: at most two notifications per
    claim, the second no sooner than 168 hours after the first.
    """

    max_notifications: int = Field(
        default=2, ge=1, le=100, description="Hard cap on notifications per claim"
    )
    cooldown_hours: int = Field(
        default=168,
        ge=0,
        le=24 * 365,
        description="Minimum hours between consecutive notifications",
    )

    @property
    def cooldown(self) -> timedelta:
        return timedelta(hours=self.cooldown_hours)


class NotifierConfig(BaseModel):
    """Validated configuration for one notifier invocation."""

    # Upstream claim source
    upstream_url: str = Field(..., min_length=1, description="Claims endpoint URL")
    upstream_api_key: str = Field(
        ..., min_length=1, description="API key sent in the x-api-key header"
    )

    # AWS resources
    history_table: str = Field(
        ..., min_length=1, description="DynamoDB table holding send history"
    )
    queue_url: str = Field(..., min_length=1, description="SQS delivery queue URL")
    aws_region: Optional[str] = Field(
        default=None, description="AWS region (falls back to boto3 defaults)"
    )

    # Policy and execution
    policy: ThrottlePolicy = Field(default_factory=ThrottlePolicy)
    operation_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=900,
        description="Bound on each fetch, history query/append and publish",
    )
    max_concurrent_claims: int = Field(
        default=5, ge=1, le=100, description="Claims processed in parallel"
    )

    @field_validator("upstream_url")
    @classmethod
    def validate_upstream_url(cls, v: str) -> str:
        """Upstream URL must be absolute http(s)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("upstream_url must start with http:// or https://")
        return v

