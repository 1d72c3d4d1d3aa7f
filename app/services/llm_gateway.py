"""Gateway to the OpenAI-compatible chat endpoint.

One structured-output request per call. Transient failures (rate limits,
5xx, connection drops, per-attempt timeouts, empty or refused completions)
are retried with exponential backoff; authentication and context-length
failures are not. Everything that escapes is an ``UpstreamError``.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional
import asyncio
import json
import logging
import time

import httpx
import openai
from langchain_core.messages import HumanMessage, SystemMessage

from app.config.llm_config import create_chat_model
from app.config.settings import Settings
from app.errors import ErrorTag, UpstreamError
from app.models.assessment import TokenUsage
from app.utils.llm_helpers import invoke_llm_with_timeout, strip_md_fences
from app.utils.token_counter import TokenCounter, estimate_cost

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    content: str
    usage: TokenUsage
    model: str
    latency_ms: int
    finish_reason: Optional[str] = None
    cost: Dict[str, Any] = field(default_factory=dict)


def _usage_from_message(message: Any) -> TokenUsage:
    usage = getattr(message, "usage_metadata", None)
    if usage:
        return TokenUsage(
            prompt=usage.get("input_tokens", 0),
            completion=usage.get("output_tokens", 0),
            total=usage.get("total_tokens", 0),
        )

    token_usage = (getattr(message, "response_metadata", None) or {}).get("token_usage") or {}
    return TokenUsage(
        prompt=token_usage.get("prompt_tokens", 0),
        completion=token_usage.get("completion_tokens", 0),
        total=token_usage.get("total_tokens", 0),
    )


def _classify(error: Exception) -> UpstreamError:
    """Map a client exception onto an UpstreamError with its retry policy."""
    if isinstance(error, openai.AuthenticationError):
        return UpstreamError("LLM authentication failed", tag=ErrorTag.LLM_AUTH_FAILED)
    if isinstance(error, openai.BadRequestError):
        if getattr(error, "code", None) == "context_length_exceeded":
            return UpstreamError(
                "Context too long for the model", tag=ErrorTag.LLM_CONTEXT_TOO_LONG
            )
        return UpstreamError(f"LLM request rejected: {error}", tag=ErrorTag.LLM_ERROR)
    if isinstance(error, openai.RateLimitError):
        return UpstreamError(
            "LLM rate limit exceeded", tag=ErrorTag.LLM_RATE_LIMITED, retryable=True
        )
    if isinstance(error, openai.APITimeoutError):
        return UpstreamError("LLM request timed out", tag=ErrorTag.LLM_TIMEOUT, retryable=True)
    if isinstance(error, openai.APIConnectionError):
        return UpstreamError(
            "Could not reach the LLM endpoint", tag=ErrorTag.LLM_SERVER_ERROR, retryable=True
        )
    if isinstance(error, openai.InternalServerError):
        return UpstreamError(
            "LLM endpoint error", tag=ErrorTag.LLM_SERVER_ERROR, retryable=True
        )
    if isinstance(error, openai.APIStatusError):
        return UpstreamError(
            f"LLM endpoint returned {error.status_code}", tag=ErrorTag.LLM_ERROR
        )
    return UpstreamError(f"LLM call failed: {error}", tag=ErrorTag.LLM_ERROR)


class LLMGateway:
    """Owns the chat client, its HTTP connection pool and the token counter."""

    def __init__(
        self,
        settings: Settings,
        chat_model: Any = None,
        token_counter: Optional[TokenCounter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.model = settings.openai_model
        self._http_client: Optional[httpx.AsyncClient] = None
        if chat_model is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.llm_invoke_timeout, connect=10.0)
            )
            chat_model = create_chat_model(settings, http_async_client=self._http_client)
        self._chat_model = chat_model
        self.token_counter = token_counter or TokenCounter(self.model)
        self._sleep = sleep

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.openai_api_key and self.model)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (0-based)."""
        return min(
            self.settings.llm_retry_base_delay * (2 ** attempt),
            self.settings.llm_retry_max_delay,
        )

    async def generate_completion(self, system_prompt: str, user_prompt: str) -> CompletionResult:
        """
        Run one chat completion with retries and an overall deadline.

        Args:
            system_prompt: Instructions
            user_prompt: Request including the serialized context

        Returns:
            CompletionResult with content, usage, model and latency

        Raises:
            UpstreamError: on a fatal failure, after retries are exhausted,
                or when the overall deadline passes
        """
        timeout = self.settings.llm_request_timeout
        try:
            return await asyncio.wait_for(
                self._complete_with_retries(system_prompt, user_prompt), timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"LLM request exceeded overall timeout of {timeout}s")
            raise UpstreamError(
                f"LLM request timed out after {timeout}s", tag=ErrorTag.LLM_TIMEOUT
            )

    async def _complete_with_retries(self, system_prompt: str, user_prompt: str) -> CompletionResult:
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        prompt_estimate = self.token_counter.count_messages(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ]
        )
        attempts = max(1, self.settings.llm_max_retries)
        last_error: Optional[UpstreamError] = None

        for attempt in range(attempts):
            started = time.perf_counter()
            try:
                response = await invoke_llm_with_timeout(
                    self._chat_model, messages, timeout=self.settings.llm_invoke_timeout
                )
                result = self._to_result(response, started)
                logger.info(
                    f"LLM completion from {result.model}: {result.usage.total} tokens "
                    f"(~{prompt_estimate} prompt estimated), {result.latency_ms}ms, "
                    f"est. ${result.cost.get('total_cost', 0)}"
                )
                return result
            except UpstreamError as e:
                last_error = e
            except asyncio.TimeoutError:
                last_error = UpstreamError(
                    "LLM attempt timed out", tag=ErrorTag.LLM_TIMEOUT, retryable=True
                )
            except (openai.OpenAIError, httpx.HTTPError) as e:
                last_error = _classify(e)

            if not last_error.retryable:
                logger.error(f"LLM call failed ({last_error.tag}): {last_error.message}")
                raise last_error

            if attempt < attempts - 1:
                delay = self.backoff_delay(attempt)
                logger.warning(
                    f"LLM attempt {attempt + 1}/{attempts} failed ({last_error.tag}), "
                    f"retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        logger.error(f"LLM call failed after {attempts} attempts ({last_error.tag})")
        raise last_error

    def _to_result(self, response: Any, started: float) -> CompletionResult:
        additional = getattr(response, "additional_kwargs", None) or {}
        if additional.get("refusal"):
            raise UpstreamError(
                f"LLM refused the request: {additional['refusal']}",
                tag=ErrorTag.LLM_REFUSED,
                retryable=True,
            )

        content = getattr(response, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise UpstreamError(
                "LLM returned an empty response", tag=ErrorTag.LLM_EMPTY_RESPONSE, retryable=True
            )

        metadata = getattr(response, "response_metadata", None) or {}
        finish_reason = metadata.get("finish_reason")
        if finish_reason == "length":
            logger.warning("LLM completion hit the token limit; output may be cut off")

        usage = _usage_from_message(response)
        model = metadata.get("model_name") or self.model
        return CompletionResult(
            content=content,
            usage=usage,
            model=model,
            latency_ms=int((time.perf_counter() - started) * 1000),
            finish_reason=finish_reason,
            cost=estimate_cost(usage.prompt, usage.completion, model),
        )

    async def generate_structured_output(
        self, system_prompt: str, user_prompt: str
    ) -> tuple[Dict[str, Any], CompletionResult]:
        """Completion parsed as a JSON object; code fences are tolerated."""
        result = await self.generate_completion(system_prompt, user_prompt)
        try:
            payload = json.loads(strip_md_fences(result.content))
        except json.JSONDecodeError as e:
            logger.error(f"LLM output is not valid JSON: {e}")
            raise UpstreamError(
                "LLM returned invalid JSON", tag=ErrorTag.LLM_INVALID_OUTPUT
            )

        if not isinstance(payload, dict):
            raise UpstreamError(
                "LLM output is not a JSON object", tag=ErrorTag.LLM_INVALID_OUTPUT
            )
        return payload, result

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        self.token_counter.close()
        logger.info("LLM gateway closed")
