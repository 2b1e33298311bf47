"""
LLM client - Provider-agnostic LLM integration using LiteLLM

Adds a closed error taxonomy and retry-with-backoff on top of the plain
completion call. Retry decisions are made on the provider's structured
status code and LiteLLM's exception classes, never on message text.
"""

import asyncio
import json
import logging
import os
import random
import re
from enum import Enum
from typing import Any

from tiledm.config import (
    INITIAL_RETRY_DELAY,
    MAX_RETRIES,
    MAX_RETRY_DELAY,
    get_model_string,
    get_provider,
)

# Configure logging
logger = logging.getLogger(__name__)


class GatewayErrorKind(str, Enum):
    """Why a gateway call failed"""

    OVERLOADED = "overloaded"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    EMPTY_RESPONSE = "empty_response"
    PARSE = "parse"
    SCHEMA = "schema"
    FATAL = "fatal"


RETRYABLE_KINDS = frozenset(
    {
        GatewayErrorKind.OVERLOADED,
        GatewayErrorKind.RATE_LIMITED,
        GatewayErrorKind.TIMEOUT,
        GatewayErrorKind.CONNECTION,
    }
)

OVERLOADED_STATUS_CODES = frozenset({500, 502, 503, 504})


class GatewayError(Exception):
    """Failure of a generative content request."""

    def __init__(
        self,
        message: str,
        kind: GatewayErrorKind = GatewayErrorKind.FATAL,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


def classify_exception(exc: BaseException) -> GatewayErrorKind:
    """Map a provider exception onto the gateway error taxonomy"""
    import litellm

    if isinstance(exc, GatewayError):
        return exc.kind
    if isinstance(exc, (litellm.Timeout, asyncio.TimeoutError)):
        return GatewayErrorKind.TIMEOUT
    if isinstance(exc, litellm.APIConnectionError):
        return GatewayErrorKind.CONNECTION

    status_code = getattr(exc, "status_code", None)
    if status_code == 429:
        return GatewayErrorKind.RATE_LIMITED
    if status_code in OVERLOADED_STATUS_CODES:
        return GatewayErrorKind.OVERLOADED
    return GatewayErrorKind.FATAL


def retry_delay(attempt: int) -> float:
    """Exponential backoff with a little jitter, capped"""
    return min(INITIAL_RETRY_DELAY * (2**attempt) + random.uniform(0, 0.5), MAX_RETRY_DELAY)


async def get_completion(
    messages: list[dict[str, str]],
    model: str | None = None,
    temperature: float = 0.7,
    max_tokens: int = 2048,
    response_format: dict | None = None,
    max_retries: int = MAX_RETRIES,
) -> str:
    """
    Get completion from configured LLM provider, retrying transient failures.

    Args:
        messages: List of message dicts with 'role' and 'content'
        model: Optional model override
        temperature: Creativity (0-1)
        max_tokens: Maximum response length
        response_format: Optional format specification
        max_retries: Total attempts for retryable failures

    Returns:
        The generated text response

    Raises:
        GatewayError: On a non-retryable failure or once retries run out
    """
    last_error: GatewayError | None = None

    for attempt in range(max_retries):
        try:
            return await _complete_once(messages, model, temperature, max_tokens, response_format)
        except Exception as e:
            kind = classify_exception(e)
            error = e if isinstance(e, GatewayError) else GatewayError(
                f"LLM request failed: {type(e).__name__}: {e}",
                kind=kind,
                status_code=getattr(e, "status_code", None),
            )
            if not error.is_retryable:
                logger.error(f"LLM Error ({error.kind.value}): {error.message}")
                raise error from e

            last_error = error
            if attempt < max_retries - 1:
                delay = retry_delay(attempt)
                logger.warning(
                    f"Retryable LLM failure ({error.kind.value}), attempt {attempt + 1}/{max_retries}; "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    assert last_error is not None
    logger.error(f"LLM request failed after {max_retries} attempts: {last_error.message}")
    raise last_error


async def _complete_once(
    messages: list[dict[str, str]],
    model: str | None,
    temperature: float,
    max_tokens: int,
    response_format: dict | None,
) -> str:
    """Single LiteLLM call with response sanity checks"""
    import litellm

    _configure_api_keys()

    model_string = model or get_model_string()

    logger.info(
        f"LLM Request: model={model_string}, temperature={temperature}, max_tokens={max_tokens}"
    )
    logger.debug(f"Messages: {len(messages)} messages, response_format={response_format}")

    kwargs: dict[str, Any] = {
        "model": model_string,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }

    # Not all models support JSON mode
    if response_format:
        kwargs["response_format"] = response_format

    response = await litellm.acompletion(**kwargs)

    content = response.choices[0].message.content
    finish_reason = getattr(response.choices[0], "finish_reason", "unknown")

    logger.info(
        f"LLM Response: finish_reason={finish_reason}, content_length={len(content) if content else 0}"
    )

    if finish_reason == "length":
        logger.warning(f"Response TRUNCATED due to max_tokens limit ({max_tokens}).")

    if not content or not content.strip():
        raise GatewayError("LLM returned empty response. Please try again.", kind=GatewayErrorKind.EMPTY_RESPONSE)

    preview = content[:200] + "..." if len(content) > 200 else content
    logger.debug(f"Response preview: {preview}")
    return content


def _configure_api_keys():
    """Configure API keys for LiteLLM from environment"""
    import litellm

    provider = get_provider()

    if provider == "gemini":
        if not os.getenv("GEMINI_API_KEY"):
            logger.warning("GEMINI_API_KEY not found in environment")

    elif provider == "openai":
        api_key = os.getenv("OPENAI_API_KEY")
        if api_key:
            litellm.api_key = api_key
        else:
            logger.warning("OPENAI_API_KEY not found in environment")

    elif provider == "anthropic":
        if not os.getenv("ANTHROPIC_API_KEY"):
            logger.warning("ANTHROPIC_API_KEY not found in environment")

    elif provider == "ollama":
        base_url = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
        os.environ["OLLAMA_API_BASE"] = base_url


def parse_json_response(response: str | None) -> dict:
    """
    Extract the first well-formed JSON object from an LLM response.

    Tolerates markdown code fences and chatter around the object.

    Raises:
        GatewayError: EMPTY_RESPONSE for blank input, PARSE when no
            JSON object can be decoded
    """
    if response is None or not response.strip():
        raise GatewayError("LLM returned empty response. Please try again.", kind=GatewayErrorKind.EMPTY_RESPONSE)

    cleaned = re.sub(r"```(?:json)?", "", response).strip()

    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", cleaned):
        try:
            parsed, _ = decoder.raw_decode(cleaned, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    snippet = cleaned[:200] + "..." if len(cleaned) > 200 else cleaned
    raise GatewayError(
        f"Failed to parse JSON from LLM response. "
        f"The AI may have returned malformed or truncated output. "
        f"Response preview: {snippet}",
        kind=GatewayErrorKind.PARSE,
    )
