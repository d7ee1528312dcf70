"""Rate-limited Slack Web API client.

Every call to Slack goes through :meth:`SlackClient.call`. A rate-limit
response is retried after ``max(retry_after, backoff)`` seconds, doubling the
backoff each time, until ``max_retries`` retries have been spent. Every other
error surfaces immediately as :class:`SlackApiCallError`.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from slack_sdk.errors import SlackApiError, SlackClientError
from slack_sdk.web.async_client import AsyncWebClient
from structlog.stdlib import BoundLogger

from slackdigest.infrastructure.slack.errors import (
    RetriesExhaustedError,
    SlackApiCallError,
)

DEFAULT_RETRY_AFTER = 1.0


@dataclass(frozen=True)
class RateLimited:
    """Outcome of an attempt that Slack rejected with HTTP 429."""

    retry_after: float


@dataclass(frozen=True)
class RetryState:
    """Retry bookkeeping for a single call."""

    attempts: int
    delay: float

    @property
    def retries_used(self) -> int:
        return max(self.attempts - 1, 0)

    def record_attempt(self) -> "RetryState":
        return replace(self, attempts=self.attempts + 1)

    def backoff(self) -> "RetryState":
        return replace(self, delay=self.delay * 2)


class SlackClient:
    """Slack Web API client with rate-limit retries and cursor pagination.

    Args:
        web_client: slack_sdk async client used for transport.
        logger: Structured logger.
        max_retries: Retries allowed after a rate-limited attempt.
        base_delay: Initial backoff in seconds.
        page_size: Page size for cursor-paginated methods.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        web_client: AsyncWebClient,
        logger: BoundLogger,
        max_retries: int = 3,
        base_delay: float = 1.0,
        page_size: int = 200,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._web_client = web_client
        self._logger = logger
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._page_size = page_size
        self._sleep = sleep

    @classmethod
    def from_token(cls, token: str, logger: BoundLogger, **kwargs: Any) -> "SlackClient":
        """Create a client backed by a new AsyncWebClient."""
        return cls(AsyncWebClient(token=token), logger, **kwargs)

    async def call(self, operation: str, **params: Any) -> dict[str, Any]:
        """Call a Slack Web API method.

        Args:
            operation: Slack method name, e.g. ``conversations.history``.
            **params: Method arguments. None values are dropped.

        Returns:
            The response payload.

        Raises:
            RetriesExhaustedError: If the call is still rate limited after
                max_retries retries.
            SlackApiCallError: For any other API or transport failure.
        """
        state = RetryState(attempts=0, delay=self._base_delay)
        while True:
            outcome = await self._attempt(operation, params)
            state = state.record_attempt()
            if not isinstance(outcome, RateLimited):
                return outcome

            if state.retries_used >= self._max_retries:
                self._logger.error(
                    "Rate limit retries exhausted",
                    operation=operation,
                    attempts=state.attempts,
                )
                raise RetriesExhaustedError(
                    operation, attempts=state.attempts, retry_after=outcome.retry_after
                )

            wait = max(outcome.retry_after, state.delay)
            self._logger.warning(
                "Rate limited by Slack API, retrying",
                operation=operation,
                attempt=state.attempts,
                max_retries=self._max_retries,
                wait_seconds=wait,
            )
            await self._sleep(wait)
            state = state.backoff()

    async def _attempt(
        self, operation: str, params: Mapping[str, Any]
    ) -> dict[str, Any] | RateLimited:
        method = getattr(self._web_client, operation.replace(".", "_"), None)
        if method is None:
            raise ValueError(f"Unknown Slack method: {operation}")

        arguments = {key: value for key, value in params.items() if value is not None}
        try:
            response = await method(**arguments)
        except SlackApiError as e:
            if _is_rate_limited(e.response):
                return RateLimited(retry_after=_retry_after(e.response))
            raise SlackApiCallError(operation, _error_code(e.response), str(e)) from e
        except SlackClientError as e:
            raise SlackApiCallError(operation, "client_error", str(e)) from e
        return dict(response.data)

    async def paginate(
        self, operation: str, key: str, **params: Any
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield items under key across all cursor pages of a method."""
        cursor: str | None = None
        while True:
            page = await self.call(
                operation, cursor=cursor, limit=self._page_size, **params
            )
            for item in page.get(key) or []:
                yield item
            cursor = (page.get("response_metadata") or {}).get("next_cursor") or None
            if cursor is None:
                return

    async def list_conversations(self, types: Sequence[str]) -> list[dict[str, Any]]:
        """List every conversation of the given types visible to the bot."""
        return [
            conversation
            async for conversation in self.paginate(
                "conversations.list",
                "channels",
                types=",".join(types),
                exclude_archived=True,
            )
        ]

    async def conversation_info(self, channel: str) -> dict[str, Any] | None:
        response = await self.call("conversations.info", channel=channel)
        return response.get("channel")

    def history(
        self, channel: str, oldest: str | None = None
    ) -> AsyncIterator[dict[str, Any]]:
        """Iterate a conversation's top-level messages newer than oldest."""
        return self.paginate(
            "conversations.history", "messages", channel=channel, oldest=oldest
        )

    def replies(self, channel: str, thread_ts: str) -> AsyncIterator[dict[str, Any]]:
        """Iterate a thread, root message first."""
        return self.paginate(
            "conversations.replies", "messages", channel=channel, ts=thread_ts
        )

    async def user_info(self, user: str) -> dict[str, Any]:
        """Return a users.info member object.

        Raises:
            SlackApiCallError: If Slack does not know the user.
        """
        response = await self.call("users.info", user=user)
        member = response.get("user")
        if not member:
            raise SlackApiCallError("users.info", "user_not_found")
        return member

    def list_users(self) -> AsyncIterator[dict[str, Any]]:
        return self.paginate("users.list", "members")

    async def post_message(
        self, channel: str, text: str, blocks: list[dict[str, Any]] | None = None
    ) -> str:
        """Post a message and return its ts."""
        response = await self.call(
            "chat.postMessage", channel=channel, text=text, blocks=blocks
        )
        return str(response["ts"])

    async def get_permalink(self, channel: str, ts: str) -> str:
        response = await self.call("chat.getPermalink", channel=channel, message_ts=ts)
        return str(response.get("permalink") or "")


def _is_rate_limited(response: Any) -> bool:
    if getattr(response, "status_code", None) == 429:
        return True
    return _error_code(response) == "ratelimited"


def _error_code(response: Any) -> str:
    data = getattr(response, "data", None)
    if isinstance(data, dict):
        return str(data.get("error") or "unknown_error")
    return "unknown_error"


def _retry_after(response: Any) -> float:
    headers = getattr(response, "headers", None) or {}
    for name, value in headers.items():
        if name.lower() != "retry-after":
            continue
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        try:
            return float(value)
        except (TypeError, ValueError):
            break
    return DEFAULT_RETRY_AFTER
