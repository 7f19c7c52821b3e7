"""Anthropic API client abstraction."""
import asyncio
import json
import logging

import anthropic
from anthropic import AsyncAnthropic
from pydantic import BaseModel

from .config import Settings
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Characters per token when the provider reports no usage
CHARS_PER_TOKEN = 4

TRANSIENT_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
    asyncio.TimeoutError,
)


class Completion(BaseModel):
    """Text returned by the provider plus its token usage."""
    text: str
    prompt_tokens: int
    completion_tokens: int
    estimated_usage: bool = False


def estimate_tokens(text: str) -> int:
    return len(text) // CHARS_PER_TOKEN


def backoff_delay(retry_number: int) -> float:
    """Seconds to wait before retry ``retry_number`` (1-based): 2, 4, 8, ..."""
    return float(2 ** retry_number)


class APIClient:
    """Wrapper around Anthropic API with retry and timeout handling.

    Transient failures (connection errors, timeouts, rate limits, server errors)
    are retried up to ``max_retries`` times with exponential backoff. Anything
    else is raised on the first attempt.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-haiku-4-5",
        max_retries: int = 3,
        timeout: float = 60.0,
        temperature: float = 0.3,
        max_tokens: int = 1024,
        client=None,
        sleep=asyncio.sleep,
    ):
        if client is None:
            if not api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY environment variable is required")
            # Retries are ours; the SDK must not retry underneath us
            client = AsyncAnthropic(api_key=api_key, max_retries=0)
        self.client = client
        self.model = model
        self.max_retries = max_retries
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "APIClient":
        return cls(
            api_key=settings.anthropic_api_key,
            model=settings.model,
            max_retries=settings.max_retries,
            timeout=settings.request_timeout,
            temperature=settings.temperature,
            max_tokens=settings.max_output_tokens,
            **kwargs,
        )

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int | None = None,
        operation: str = "",
    ) -> Completion:
        """Call the API with automatic retry and timeout handling."""
        request = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = system

        attempt = 0
        while True:
            attempt += 1
            try:
                logger.debug("Calling provider for %s (attempt %d)", operation, attempt)
                response = await asyncio.wait_for(
                    self.client.messages.create(**request),
                    timeout=self.timeout,
                )
            except TRANSIENT_ERRORS as e:
                if attempt > self.max_retries:
                    logger.error(
                        "Provider request for %s failed after %d attempts: %s",
                        operation, attempt, e,
                    )
                    raise
                delay = backoff_delay(attempt)
                logger.warning(
                    "Provider request for %s failed (%s). Retry %d after %.0fs",
                    operation, type(e).__name__, attempt, delay,
                )
                await self._sleep(delay)
                continue

            return self._to_completion(response, prompt, system or "")

    @staticmethod
    def _to_completion(response, prompt: str, system: str) -> Completion:
        text = "".join(
            getattr(block, "text", "") for block in (response.content or [])
        ).strip()

        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "input_tokens", None)
        output_tokens = getattr(usage, "output_tokens", None)
        if input_tokens is None or output_tokens is None:
            return Completion(
                text=text,
                prompt_tokens=estimate_tokens(system + prompt),
                completion_tokens=estimate_tokens(text),
                estimated_usage=True,
            )

        logger.info(
            "Provider request completed. Tokens - Prompt: %d, Completion: %d",
            input_tokens, output_tokens,
        )
        return Completion(
            text=text,
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
        )


def strip_wrappers(content: str) -> str:
    """Remove code fences and leading/trailing prose around a JSON payload."""
    content = content.strip()

    # Extract from code block if present
    if "```" in content:
        parts = content.split("```")
        if len(parts) >= 3:
            content = parts[1]
            if content.startswith(("json", "JSON")):
                content = content[4:]
            content = content.strip()

    starts = [i for i in (content.find("{"), content.find("[")) if i >= 0]
    if starts:
        content = content[min(starts):]
    return content


def parse_json(content: str) -> dict | list:
    """Parse JSON from LLM response, handling code blocks and malformed JSON."""
    content = strip_wrappers(content)

    # Try parsing as-is first
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    # Try truncating at last closing brace/bracket
    last_close = max(content.rfind("}"), content.rfind("]"))
    if last_close > 0:
        try:
            return json.loads(content[:last_close + 1])
        except json.JSONDecodeError:
            pass

    # Try counting braces to find structure boundaries
    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(content):
        if escape_next:
            escape_next = False
            continue

        if char == "\\" and in_string:
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if not in_string:
            if char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
                if depth == 0:
                    try:
                        return json.loads(content[:i + 1])
                    except json.JSONDecodeError:
                        break

    raise json.JSONDecodeError(
        f"Could not parse JSON. Last 500 chars: {content[-500:]}",
        content,
        max(len(content) - 1, 0),
    )
