"""Utility functions for LLM invocations with timeout handling."""

import asyncio
import logging
import re
from typing import List, Any, Optional
from langchain_core.messages import BaseMessage
from langchain_core.runnables import Runnable
from app.config.settings import settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```\s*$", re.DOTALL)


async def invoke_llm_with_timeout(
    llm: Runnable,
    messages: List[BaseMessage],
    timeout: Optional[float] = None,
) -> Any:
    """
    Invoke an LLM with timeout protection.

    Args:
        llm: The language model to invoke
        messages: List of messages to send to the LLM
        timeout: Timeout in seconds (defaults to settings.llm_invoke_timeout)

    Returns:
        LLM response

    Raises:
        asyncio.TimeoutError: If the call does not finish in time
    """
    if timeout is None:
        timeout = settings.llm_invoke_timeout

    logger.debug(f"Invoking LLM with timeout: {timeout}s")

    try:
        return await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"LLM invocation timed out after {timeout}s")
        raise


def strip_md_fences(text: str) -> str:
    """Strip markdown code fences that the LLM sometimes wraps JSON in.

    Handles patterns like:
        ```json\\n{...}\\n```
        ```\\n{...}\\n```
    """
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped
