"""Token counting, context truncation and cost estimation."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import logging
import math

import tiktoken

logger = logging.getLogger(__name__)

FALLBACK_ENCODING = "o200k_base"
CHARS_PER_TOKEN = 4
TRUNCATION_MARKER = "\n\n[Context truncated due to length...]"

# Message framing overhead for chat models
TOKENS_PER_MESSAGE = 3
REPLY_PRIMING_TOKENS = 3

# USD per 1M tokens
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "gpt-5.1": {"input": 3.00, "output": 12.00},
    "gpt-4.5-turbo": {"input": 2.00, "output": 8.00},
    "chatgpt-4o-latest": {"input": 5.00, "output": 15.00},
    "o1": {"input": 15.00, "output": 60.00},
    "o1-mini": {"input": 3.00, "output": 12.00},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.150, "output": 0.600},
    "gpt-4-turbo": {"input": 10.00, "output": 30.00},
    "gpt-4": {"input": 30.00, "output": 60.00},
}
DEFAULT_PRICING_MODEL = "gpt-5.1"


@dataclass
class ContextBudget:
    """Result of fitting a serialized context into a token budget."""

    text: str
    token_count: int
    was_truncated: bool
    original_token_count: int


def load_encoding(model: str):
    """Encoding for a model, falling back to o200k_base for models tiktoken doesn't know."""
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        logger.debug(f"Using {FALLBACK_ENCODING} encoding for model {model}")
        return tiktoken.get_encoding(FALLBACK_ENCODING)


class TokenCounter:
    """Counts and truncates text for one model.

    The encoding is loaded on first use. If it cannot be loaded at all
    (e.g. the BPE file is not cached and there is no network), counting and
    truncation fall back to a fixed characters-per-token ratio.
    """

    def __init__(
        self,
        model: str,
        encoding: Any = None,
        loader: Callable[[str], Any] = load_encoding,
    ):
        self.model = model
        self._encoding = encoding
        self._loader = loader
        self._load_failed = False

    @property
    def encoding(self):
        if self._encoding is None and not self._load_failed:
            try:
                self._encoding = self._loader(self.model)
            except Exception as e:
                logger.warning(
                    f"Token encoding unavailable for {self.model}, estimating by characters: {e}"
                )
                self._load_failed = True
        return self._encoding

    def count(self, text: Optional[str]) -> int:
        if not text:
            return 0
        encoding = self.encoding
        if encoding is None:
            return math.ceil(len(text) / CHARS_PER_TOKEN)
        return len(encoding.encode(text))

    def count_messages(self, messages: List[Dict[str, str]]) -> int:
        """Approximate prompt size of a chat request, including framing."""
        if not messages:
            return 0
        total = REPLY_PRIMING_TOKENS
        for message in messages:
            total += TOKENS_PER_MESSAGE
            total += self.count(message.get("role"))
            total += self.count(message.get("content"))
        return total

    def truncate(self, text: str, max_tokens: int) -> str:
        """First ``max_tokens`` tokens of ``text``, without the marker."""
        encoding = self.encoding
        if encoding is None:
            return text[: max_tokens * CHARS_PER_TOKEN]
        return encoding.decode(encoding.encode(text)[:max_tokens])

    def optimize_context(self, text: str, max_tokens: int) -> ContextBudget:
        """
        Fit a serialized context into ``max_tokens``.

        Args:
            text: Serialized context
            max_tokens: Budget for the context block

        Returns:
            ContextBudget; when truncated, ``text`` is the kept prefix
            followed by the truncation marker
        """
        original = self.count(text)
        if original <= max_tokens:
            return ContextBudget(
                text=text,
                token_count=original,
                was_truncated=False,
                original_token_count=original,
            )

        logger.warning(f"Context truncated from {original} to {max_tokens} tokens")
        return ContextBudget(
            text=self.truncate(text, max_tokens) + TRUNCATION_MARKER,
            token_count=max_tokens,
            was_truncated=True,
            original_token_count=original,
        )

    def close(self) -> None:
        # tiktoken encodings hold no OS resources; drop the reference
        self._encoding = None


def estimate_cost(prompt_tokens: int, completion_tokens: int, model: str) -> Dict[str, Any]:
    """Estimated USD cost of one completion. Unknown models use the default price."""
    pricing = MODEL_PRICING.get(model) or MODEL_PRICING[DEFAULT_PRICING_MODEL]
    input_cost = prompt_tokens / 1_000_000 * pricing["input"]
    output_cost = completion_tokens / 1_000_000 * pricing["output"]
    return {
        "input_cost": round(input_cost, 6),
        "output_cost": round(output_cost, 6),
        "total_cost": round(input_cost + output_cost, 6),
        "currency": "USD",
        "model": model,
    }
