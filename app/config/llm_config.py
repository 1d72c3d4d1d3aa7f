"""LLM client configuration for the OpenAI-compatible generation endpoint."""

from langchain_openai import ChatOpenAI
from langchain_core.language_models import BaseChatModel
from langchain_core.runnables import Runnable
from app.agents.prompts import TOKEN_BUDGET, get_model_config
from app.config.settings import Settings
from typing import Optional
from pydantic import SecretStr
import httpx
import logging

logger = logging.getLogger(__name__)


def resolve_temperature(model: str, configured: float) -> float:
    """Reasoning models only run at their fixed temperature."""
    model_config = get_model_config(model)
    if model_config.get("uses_fixed_temperature"):
        return model_config["temperature"]
    return configured


def create_chat_model(
    settings: Settings,
    http_async_client: Optional[httpx.AsyncClient] = None,
    json_mode: bool = True,
) -> Runnable:
    """
    Instantiate a ChatOpenAI client for assessment generation.

    Retries are disabled on the client; the gateway owns the retry policy.

    Args:
        settings: Application settings
        http_async_client: Shared HTTP client, closed by its owner
        json_mode: Request a JSON object response

    Returns:
        Chat model, bound to ``response_format`` when json_mode is on
    """
    model_name = settings.openai_model
    model_config = get_model_config(model_name)

    kwargs = {}
    if settings.openai_reasoning_effort and model_config.get("supports_reasoning_effort"):
        kwargs["reasoning_effort"] = settings.openai_reasoning_effort

    logger.info(f"Creating OpenAI chat client: {model_name}")
    llm: BaseChatModel = ChatOpenAI(
        base_url=settings.openai_base_url,
        api_key=SecretStr(settings.openai_api_key),
        model=model_name,
        temperature=resolve_temperature(model_name, settings.openai_temperature),
        max_completion_tokens=min(settings.openai_max_tokens, TOKEN_BUDGET["max_completion"]),
        max_retries=0,
        timeout=settings.llm_invoke_timeout,
        http_async_client=http_async_client,
        **kwargs,
    )

    if json_mode and model_config.get("supports_structured_output"):
        return llm.bind(response_format={"type": "json_object"})
    return llm
