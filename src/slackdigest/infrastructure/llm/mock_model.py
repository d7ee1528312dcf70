"""Mock LLM model for testing."""

import json
from typing import Any, AsyncGenerator, AsyncIterable, TypeVar

from strands.models import Model
from strands.types.content import Messages
from strands.types.streaming import StreamEvent

T = TypeVar("T")

MOCK_SUMMARY = {
    "recap": "Mock recap of the conversation.",
    "highlights": [],
    "tasks": [],
    "mentions": {},
}


class MockModel(Model):
    """Mock model answering every prompt with a fixed summary payload."""

    def __init__(self, raise_error: bool = False, response_text: str | None = None) -> None:
        """Initialize the mock model.

        Args:
            raise_error: If True, raise an error on stream.
            response_text: Text streamed back. Defaults to MOCK_SUMMARY as JSON.
        """
        self._raise_error = raise_error
        self._response_text = response_text or json.dumps(MOCK_SUMMARY)
        self._config: dict[str, Any] = {}

    async def stream(
        self,
        messages: Messages,
        tool_specs: list[Any] | None = None,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> AsyncIterable[StreamEvent]:
        """Stream the canned response.

        Raises:
            RuntimeError: If raise_error is True.
        """
        if self._raise_error:
            raise RuntimeError("Mock LLM error for testing")

        yield {"messageStart": {"role": "assistant"}}
        yield {
            "contentBlockStart": {
                "contentBlockIndex": 0,
                "start": {"text": ""},
            }
        }
        yield {
            "contentBlockDelta": {
                "delta": {"text": self._response_text},
                "contentBlockIndex": 0,
            }
        }
        yield {
            "contentBlockStop": {
                "contentBlockIndex": 0,
            }
        }
        yield {"messageStop": {"stopReason": "end_turn"}}

    async def structured_output(
        self,
        output_model: type[T],
        prompt: Messages,
        **kwargs: Any,
    ) -> AsyncGenerator[dict[str, T | Any], None]:
        """Return structured output (not used; summaries are parsed from text)."""
        yield {}
        return

    def update_config(self, **model_config: Any) -> None:
        self._config.update(model_config)

    def get_config(self) -> dict[str, Any]:
        return self._config
