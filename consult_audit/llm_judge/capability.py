"""
The external judgment capability.

The engine only depends on the JudgmentCapability protocol: a coroutine that
takes a system prompt and a user prompt and returns free-form text. Tests
substitute canned answers; production uses AnthropicCapability.

Design decisions:
- Temperature 0 by default for reproducibility
- Every call is throttled by the rate limiter and bounded by a timeout
- One retry on transport failure or timeout, then JudgmentError
"""

import asyncio
import logging
from typing import Protocol

import anthropic

from consult_audit import config
from consult_audit.exceptions import JudgmentError
from consult_audit.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class JudgmentCapability(Protocol):
    async def complete(self, system: str, prompt: str) -> str:
        ...


class AnthropicCapability:
    """JudgmentCapability backed by Claude."""

    def __init__(
        self,
        model: str = config.JUDGE_MODEL,
        temperature: float = config.JUDGE_TEMPERATURE,
        max_tokens: int = config.JUDGE_MAX_TOKENS,
        timeout: float = config.JUDGE_TIMEOUT_SECONDS,
        max_retries: int = config.JUDGE_MAX_RETRIES,
        requests_per_minute: int = config.REQUESTS_PER_MINUTE,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        # uses ANTHROPIC_API_KEY env var when no key is configured explicitly
        self.client = client or anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY or None)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_retries = max_retries
        self.limiter = RateLimiter(requests_per_minute=requests_per_minute)

    async def _call(self, system: str, prompt: str) -> str:
        await self.limiter.wait()
        response = await asyncio.wait_for(
            self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            ),
            timeout=self.timeout,
        )
        return "".join(block.text for block in response.content if block.type == "text")

    async def complete(self, system: str, prompt: str) -> str:
        last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                return await self._call(system, prompt)
            except (anthropic.APIError, asyncio.TimeoutError) as e:
                last_error = e
                logger.warning(
                    "Judgment call failed (attempt %d/%d): %s",
                    attempt + 1, self.max_retries + 1, e,
                )
                continue

        raise JudgmentError(
            f"Judgment capability failed after {self.max_retries + 1} attempts. "
            f"Last error: {last_error}"
        ) from last_error
