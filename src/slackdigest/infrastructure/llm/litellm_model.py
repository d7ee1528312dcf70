"""LLM model factory."""

import os

from strands.models.litellm import LiteLLMModel
from strands.models.ollama import OllamaModel

from slackdigest.config.models import LLMConfig
from slackdigest.infrastructure.llm.mock_model import MockModel

# Union type for all supported models
Model = LiteLLMModel | OllamaModel | MockModel


def create_model(config: LLMConfig) -> Model:
    """Create a model based on configuration and environment.

    Args:
        config: LLM configuration.

    Returns:
        MockModel if MOCK_LLM=true (or a failing MockModel if MOCK_LLM=error),
        OllamaModel if model_id starts with "ollama/", otherwise LiteLLMModel.
    """
    mock_llm = os.getenv("MOCK_LLM", "").lower()

    if mock_llm == "true":
        return MockModel()

    if mock_llm == "error":
        return MockModel(raise_error=True)

    if config.model_id.startswith("ollama/"):
        return _create_ollama_model(config)

    # Summaries are parsed as JSON, keep sampling conservative unless configured
    params = {"temperature": 0.1, **config.params}
    return LiteLLMModel(
        model_id=config.model_id,
        params=params,
        client_args=config.client_args,
    )


def _create_ollama_model(config: LLMConfig) -> OllamaModel:
    """Create an OllamaModel from LLMConfig."""
    model_id = config.model_id.removeprefix("ollama/")
    host = config.client_args.get("api_base")
    return OllamaModel(host=host, model_id=model_id, **config.params)
