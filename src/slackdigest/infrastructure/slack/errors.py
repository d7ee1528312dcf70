"""Slack API error types."""


class SlackApiCallError(Exception):
    """A Slack Web API call failed.

    Attributes:
        operation: Slack method name, e.g. ``conversations.history``.
        code: Slack error code (``channel_not_found``, ``not_in_channel``...).
    """

    def __init__(self, operation: str, code: str, message: str = "") -> None:
        self.operation = operation
        self.code = code
        super().__init__(f"{operation} failed: {code}" + (f" ({message})" if message else ""))


class RetriesExhaustedError(SlackApiCallError):
    """A call stayed rate limited after the configured number of retries."""

    def __init__(self, operation: str, attempts: int, retry_after: float) -> None:
        self.attempts = attempts
        self.retry_after = retry_after
        super().__init__(
            operation,
            "ratelimited",
            f"gave up after {attempts} attempts",
        )
