"""Slack Web API infrastructure."""

from slackdigest.infrastructure.slack.client import RateLimited, RetryState, SlackClient
from slackdigest.infrastructure.slack.errors import (
    RetriesExhaustedError,
    SlackApiCallError,
)

__all__ = [
    "RateLimited",
    "RetriesExhaustedError",
    "RetryState",
    "SlackApiCallError",
    "SlackClient",
]
