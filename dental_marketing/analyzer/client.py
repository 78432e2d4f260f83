"""
Model Clients for the Analysis Engine

Two interchangeable clients with the same contract, prompt string in and
reply text out:

- OpenRouterClient: Gemini (or any OpenRouter model) over the chat
  completions endpoint, using httpx
- ClaudeClient: Anthropic Messages API via the anthropic SDK

Both track token usage, retry transient failures with exponential backoff
and raise ModelCallError when the call cannot be completed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import anthropic
import httpx

from ..errors import ModelCallError
from ..utils.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class TokenUsage:
    """Track token usage across calls."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, input_tokens: int, output_tokens: int) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)

    def delay_for(self, attempt: int) -> float:
        return min(self.initial_delay * (self.exponential_base ** attempt), self.max_delay)


# ============================================================================
# OPENROUTER
# ============================================================================

class OpenRouterClient:
    """
    Async client for the OpenRouter chat completions API.

    Usage:
        async with OpenRouterClient(api_key="sk-or-...") as client:
            reply = await client.complete(prompt)
    """

    BASE_URL = "https://openrouter.ai/api/v1"
    DEFAULT_MODEL = "google/gemini-2.0-flash-001"
    APP_TITLE = "DentalMarketing Analyzer"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        referer: str = "http://localhost:3000",
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key
            model: Model slug (defaults to Gemini 2.0 Flash)
            temperature: Sampling temperature
            max_tokens: Maximum output tokens
            referer: Application URL sent as HTTP-Referer
            retry_config: Retry configuration (optional)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        if not api_key:
            raise ModelCallError("OPENROUTER_API_KEY is not configured")

        self.model = model or self.DEFAULT_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.retry_config = retry_config or RetryConfig()

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "HTTP-Referer": referer,
                "X-Title": self.APP_TITLE,
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

        self.total_usage = TokenUsage()
        self.call_count = 0

    async def complete(self, prompt: str) -> str:
        """
        Send a single-turn prompt and return the reply text.

        Raises:
            ModelCallError: Non-retryable API error, retries exhausted,
                or a reply without content
        """
        if self._closed:
            raise ModelCallError("Client has been closed")

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        data = await self._request_with_retry(payload)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ModelCallError("OpenRouter reply has no message content", response=str(data)[:500])

        usage = data.get("usage") or {}
        input_tokens = usage.get("prompt_tokens", 0)
        output_tokens = usage.get("completion_tokens", 0)
        self.total_usage.add(input_tokens, output_tokens)
        self.call_count += 1

        logger.info(f"OpenRouter call ({self.model}): {input_tokens} in, {output_tokens} out")
        return content or ""

    async def _request_with_retry(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Make request with retry logic."""
        config = self.retry_config
        last_exception = None

        for attempt in range(config.max_retries + 1):
            try:
                response = await self._client.post("/chat/completions", json=payload)

                if response.status_code >= 400:
                    error = ModelCallError(
                        f"OpenRouter API error: {response.status_code} - {response.text[:500]}",
                        status_code=response.status_code,
                        response=response.text,
                    )
                    if response.status_code not in config.retryable_status_codes:
                        raise error
                    last_exception = error
                else:
                    return response.json()

            except httpx.TimeoutException as e:
                last_exception = ModelCallError(f"OpenRouter request timed out: {e}")
            except httpx.RequestError as e:
                last_exception = ModelCallError(f"OpenRouter request failed: {e}")
            except ValueError as e:
                raise ModelCallError(f"OpenRouter reply is not JSON: {e}")

            if attempt < config.max_retries:
                delay = config.delay_for(attempt)
                logger.warning(
                    f"OpenRouter request failed, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{config.max_retries + 1})"
                )
                await asyncio.sleep(delay)

        raise last_exception

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


# ============================================================================
# ANTHROPIC
# ============================================================================

class ClaudeClient:
    """
    Async client for Claude with the same complete() contract.

    Features:
    - Token usage tracking
    - Retry with exponential backoff on rate limits and server errors
    """

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    RETRYABLE_ERRORS = (
        anthropic.RateLimitError,
        anthropic.InternalServerError,
        anthropic.APIConnectionError,
    )

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        retry_config: Optional[RetryConfig] = None,
    ):
        if not api_key:
            raise ModelCallError("ANTHROPIC_API_KEY is not configured")

        self.model = model or self.DEFAULT_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.retry_config = retry_config or RetryConfig()
        self.async_client = anthropic.AsyncAnthropic(api_key=api_key)

        self.total_usage = TokenUsage()
        self.call_count = 0

    async def complete(self, prompt: str) -> str:
        """
        Send a single-turn prompt and return the concatenated text blocks.

        Raises:
            ModelCallError: API error or retries exhausted
        """
        config = self.retry_config
        last_exception = None

        for attempt in range(config.max_retries + 1):
            try:
                response = await self.async_client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    messages=[{"role": "user", "content": prompt}],
                )
            except self.RETRYABLE_ERRORS as e:
                last_exception = ModelCallError(f"Claude API error: {e}")
            except anthropic.APIStatusError as e:
                raise ModelCallError(f"Claude API error: {e}", status_code=e.status_code)
            except anthropic.APIError as e:
                raise ModelCallError(f"Claude API error: {e}")
            else:
                content = ""
                for block in response.content:
                    if hasattr(block, "text"):
                        content += block.text

                self.total_usage.add(response.usage.input_tokens, response.usage.output_tokens)
                self.call_count += 1
                logger.info(
                    f"Claude call: {response.usage.input_tokens} in, "
                    f"{response.usage.output_tokens} out"
                )
                return content

            if attempt < config.max_retries:
                delay = config.delay_for(attempt)
                logger.warning(
                    f"Claude call failed (attempt {attempt + 1}/{config.max_retries + 1}), "
                    f"retrying in {delay:.1f}s: {last_exception}"
                )
                await asyncio.sleep(delay)

        raise last_exception

    async def close(self):
        await self.async_client.close()


# ============================================================================
# FACTORY
# ============================================================================

def create_model_client(settings: Settings):
    """
    Create the model client selected by AI_PROVIDER.

    Args:
        settings: Application settings

    Returns:
        OpenRouterClient or ClaudeClient

    Raises:
        ModelCallError: Unknown provider or missing API key
    """
    provider = settings.AI_PROVIDER.lower()

    if provider == "openrouter":
        return OpenRouterClient(
            api_key=settings.OPENROUTER_API_KEY,
            model=settings.OPENROUTER_MODEL,
            temperature=settings.AI_TEMPERATURE,
            max_tokens=settings.AI_MAX_TOKENS,
            referer=settings.APP_URL,
            timeout=settings.AI_TIMEOUT,
        )

    if provider == "anthropic":
        return ClaudeClient(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.CLAUDE_MODEL,
            temperature=settings.AI_TEMPERATURE,
            max_tokens=settings.AI_MAX_TOKENS,
        )

    raise ModelCallError(f"Unknown AI_PROVIDER: {settings.AI_PROVIDER}")
