"""Model-backed summarization through a strands Agent."""

import json
import re
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from jinja2 import Template
from pydantic import ValidationError
from strands import Agent
from structlog.stdlib import BoundLogger

from slackdigest.config.models import LLMConfig
from slackdigest.domain.entities.message import Message
from slackdigest.domain.entities.summary import SummaryContent
from slackdigest.infrastructure.llm.litellm_model import create_model

SYSTEM_PROMPT = (
    "You summarize Slack conversations. Respond with a single JSON object "
    "and nothing else."
)

TRANSCRIPT_TEMPLATE = Template(
    """Summarize the Slack conversation below covering {{ start.isoformat() }} to {{ end.isoformat() }}.

Return a JSON object with these keys:
- "recap": a short paragraph describing what happened.
- "highlights": up to {{ highlight_limit }} important messages, each {"text", "ts", "user_id"}.
- "tasks": action items, each {"title", "owner_user_id" (or null), "due_date" (YYYY-MM-DD or null), "source_ts"}.
- "mentions": an object mapping user IDs to {"count", "contexts"}.

Use the ts values exactly as they appear in the transcript.

Conversation:
{% for message in messages -%}
[{{ message.posted_at.isoformat() }}] ts={{ message.ts }} <@{{ message.user_id }}>{% if message.is_thread_starter %} [THREAD_START]{% endif %}{% if message.is_reply %} (reply to {{ message.thread_ts }}){% endif %}: {{ message.text }}
{%- if message.reactions %} (reactions: {% for name, users in message.reactions.items() %}:{{ name }}: x{{ users | length }}{% if not loop.last %}, {% endif %}{% endfor %}){% endif %}
{% endfor %}"""
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class SummaryParseError(ValueError):
    """Raised when a model reply is not a valid summary payload."""


class Summarizer(Protocol):
    """Produces summary content for a window of messages."""

    async def summarize(
        self, messages: Sequence[Message], start: datetime, end: datetime
    ) -> SummaryContent: ...


def render_transcript(
    messages: Sequence[Message],
    start: datetime,
    end: datetime,
    highlight_limit: int = 5,
) -> str:
    """Render the prompt sent to the model."""
    return TRANSCRIPT_TEMPLATE.render(
        messages=messages, start=start, end=end, highlight_limit=highlight_limit
    )


def parse_model_payload(text: str | None) -> SummaryContent:
    """Parse a model reply into SummaryContent.

    Replies wrapped in a markdown code fence are accepted.

    Raises:
        SummaryParseError: If the reply is empty, not JSON, or fails validation.
    """
    if not text or not text.strip():
        raise SummaryParseError("Empty model reply")

    body = text.strip()
    fenced = _CODE_FENCE.match(body)
    if fenced:
        body = fenced.group(1)

    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise SummaryParseError(f"Model reply is not JSON: {e}") from e

    if not isinstance(payload, dict):
        raise SummaryParseError("Model reply must be a JSON object")

    try:
        return SummaryContent.model_validate(payload)
    except ValidationError as e:
        raise SummaryParseError(f"Model reply failed validation: {e}") from e


class AgentSummarizer:
    """Summarizer running a one-shot strands Agent per window."""

    def __init__(
        self, config: LLMConfig, logger: BoundLogger, highlight_limit: int = 5
    ) -> None:
        self._config = config
        self._logger = logger
        self._highlight_limit = highlight_limit

    async def summarize(
        self, messages: Sequence[Message], start: datetime, end: datetime
    ) -> SummaryContent:
        """Summarize messages with the configured model.

        Raises:
            SummaryParseError: If the reply cannot be parsed.
            Exception: If the model invocation fails.
        """
        query = render_transcript(messages, start, end, self._highlight_limit)
        self._logger.debug(
            "Invoking summary model",
            model_id=self._config.model_id,
            message_count=len(messages),
        )

        # Windows are independent, so every call gets a fresh Agent
        agent = Agent(
            model=create_model(self._config),
            system_prompt=SYSTEM_PROMPT,
            tools=[],
            callback_handler=None,
        )
        result = await agent.invoke_async(query)
        return parse_model_payload(self._extract_response_text(result))

    def _extract_response_text(self, result: Any) -> str | None:
        """Extract text from agent result."""
        if result is None:
            return None

        if hasattr(result, "message"):
            message: dict[str, Any] = result.message
            if isinstance(message, dict) and "content" in message:
                content: list[dict[str, Any]] = message["content"]
                if isinstance(content, list) and len(content) > 0:
                    first_block = content[0]
                    if isinstance(first_block, dict) and "text" in first_block:
                        text: str = first_block["text"]
                        return text

        return str(result)
