"""LLM model infrastructure."""

from slackdigest.infrastructure.llm.litellm_model import Model, create_model
from slackdigest.infrastructure.llm.mock_model import MOCK_SUMMARY, MockModel

__all__ = ["MOCK_SUMMARY", "MockModel", "Model", "create_model"]
