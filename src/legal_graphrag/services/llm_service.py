"""
LLM completion service.

Claude (Anthropic) is the primary provider; GPT-4o (OpenAI) is used as a
fallback only when an OpenAI key is configured.
"""

import asyncio
import json
import re
import time
from functools import lru_cache
from typing import Any

import structlog
from anthropic import APIConnectionError, AsyncAnthropic, InternalServerError, RateLimitError
from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from legal_graphrag.config import Settings, get_settings

logger = structlog.get_logger(__name__)

TRANSIENT_ERRORS = (APIConnectionError, RateLimitError, InternalServerError)

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```")


def extract_json_object(text: str) -> dict[str, Any] | None:
    """
    Pull a JSON object out of a completion.

    A ```json fenced block wins; otherwise the span from the first ``{`` to
    the last ``}`` is tried. Returns None when neither parses to an object.
    """
    candidates = []
    match = _JSON_FENCE.search(text)
    if match:
        candidates.append(match.group(1))
    start = text.find("{")
    end = text.rfind("}") + 1
    if start != -1 and end > start:
        candidates.append(text[start:end])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


class LLMService:
    """
    Completion client used by diagnosis, document generation and chat.
    """

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.settings = settings

        self._anthropic: AsyncAnthropic | None = None
        self._openai: AsyncOpenAI | None = None

        if settings.anthropic_configured:
            self._anthropic = AsyncAnthropic(api_key=settings.anthropic_api_key)
        if settings.openai_api_key:
            self._openai = AsyncOpenAI(api_key=settings.openai_api_key)

        self.primary_model = settings.model_name
        self.fallback_model = settings.fallback_llm_model

    @property
    def anthropic(self) -> AsyncAnthropic:
        if not self._anthropic:
            raise ValueError("Anthropic client not configured. Set ANTHROPIC_API_KEY.")
        return self._anthropic

    @property
    def openai(self) -> AsyncOpenAI:
        if not self._openai:
            raise ValueError("OpenAI client not configured. Set OPENAI_API_KEY.")
        return self._openai

    @property
    def is_configured(self) -> bool:
        """Whether any completion provider has a usable key."""
        return self._anthropic is not None or self._openai is not None

    def health_check(self) -> dict[str, bool]:
        """Report which providers are configured."""
        return {
            "anthropic": self._anthropic is not None,
            "openai": self._openai is not None,
        }

    async def close(self) -> None:
        if self._anthropic:
            await self._anthropic.close()
        if self._openai:
            await self._openai.close()

    # =========================================================================
    # Core LLM Calls
    # =========================================================================

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _call_anthropic(
        self,
        prompt: str,
        max_tokens: int,
        system_prompt: str | None = None,
    ) -> str:
        """Call Anthropic Claude API."""
        kwargs: dict[str, Any] = {}
        if system_prompt:
            kwargs["system"] = system_prompt
        response = await self.anthropic.messages.create(
            model=self.primary_model,
            max_tokens=max_tokens,
            temperature=self.settings.llm_temperature,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _call_openai(
        self,
        prompt: str,
        max_tokens: int,
        system_prompt: str | None = None,
    ) -> str:
        """Call OpenAI GPT-4o API."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        response = await self.openai.chat.completions.create(
            model=self.fallback_model,
            max_tokens=max_tokens,
            temperature=self.settings.llm_temperature,
            messages=messages,
        )
        return response.choices[0].message.content or ""

    async def generate(
        self,
        prompt: str,
        *,
        max_tokens: int,
        timeout: float,
        system_prompt: str | None = None,
    ) -> tuple[str, str]:
        """
        Generate a completion within ``timeout`` seconds.

        The primary provider is tried first; on failure the fallback provider
        is used when configured, within whatever remains of the same
        ``timeout``. Timeouts cancel the in-flight request.

        Returns (response_text, model_used).
        """
        deadline = time.monotonic() + timeout

        if self._anthropic:
            try:
                text = await asyncio.wait_for(
                    self._call_anthropic(prompt, max_tokens, system_prompt),
                    timeout=timeout,
                )
                return text, self.primary_model
            except Exception as e:
                logger.warning(
                    "primary_llm_failed",
                    provider="anthropic",
                    error=str(e) or type(e).__name__,
                )
                if not self._openai:
                    raise

        if self._openai:
            try:
                text = await asyncio.wait_for(
                    self._call_openai(prompt, max_tokens, system_prompt),
                    timeout=max(deadline - time.monotonic(), 0),
                )
                return text, self.fallback_model
            except Exception as e:
                logger.error(
                    "fallback_llm_failed",
                    provider="openai",
                    error=str(e) or type(e).__name__,
                )
                raise

        raise ValueError("No LLM provider available")


@lru_cache()
def get_llm_service() -> LLMService:
    """Get cached LLM service instance."""
    return LLMService()
