"""
OpenRouter Client - OpenAI-compatible chat completions.

API docs: https://openrouter.ai/docs
"""
import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI
from loguru import logger

from beacon.exceptions import InsufficientQuota, RateLimited, TransportError
from .base import LLMClient, LLMResponse, Message


class OpenRouterClient(LLMClient):
    """
    OpenRouter client using the OpenAI SDK.

    SDK-level retries are disabled: the pipeline's retry policy decides
    what gets retried.
    """

    API_BASE = "https://openrouter.ai/api/v1"
    APP_TITLE = "Beacon Triage"

    supports_structured_output = True

    def __init__(
        self,
        api_key: str,
        model: str = "openai/gpt-5.2-nano",
        base_url: Optional[str] = None,
        request_timeout: float = 120.0,
        resource_timeout: float = 300.0,
        verify_ssl: bool = True,
        structured_output: bool = True,
    ):
        """
        Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key
            model: Model slug (e.g. openai/gpt-4o-mini)
            base_url: Override of the API base URL
            request_timeout: Per-read timeout in seconds
            resource_timeout: Upper bound for a whole call in seconds
            verify_ssl: Whether to verify SSL certificates
            structured_output: Whether the model accepts json_schema output
        """
        super().__init__(model)
        self.resource_timeout = resource_timeout
        self.supports_structured_output = structured_output

        http_client = None
        if not verify_ssl:
            http_client = httpx.AsyncClient(verify=False)
            logger.warning("SSL verification disabled for OpenRouter client")

        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or self.API_BASE,
            timeout=httpx.Timeout(request_timeout, connect=10.0),
            max_retries=0,
            http_client=http_client,
            default_headers={"X-Title": self.APP_TITLE},
        )

    async def chat(
        self,
        messages: List[Message],
        system: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: float = 0.3,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        api_messages = self._build_messages(messages, system)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": api_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format and self.supports_structured_output:
            kwargs["response_format"] = response_format

        logger.debug(f"OpenRouter request: model={self.model}, messages={len(api_messages)}")
        started = time.monotonic()

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self.resource_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"OpenRouter request exceeded {self.resource_timeout}s") from e
        except openai.APIStatusError as e:
            raise map_status_error(e.status_code, str(e)) from e
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            raise TransportError(f"OpenRouter connection failed: {e}") from e

        if not response.choices:
            raise TransportError("OpenRouter returned no choices")

        choice = response.choices[0]
        usage = response.usage
        result = LLMResponse(
            content=choice.message.content or "",
            model=response.model or self.model,
            usage={
                "input_tokens": usage.prompt_tokens,
                "output_tokens": usage.completion_tokens,
                "total_tokens": usage.total_tokens,
            } if usage else {},
            stop_reason=choice.finish_reason,
            latency_ms=int((time.monotonic() - started) * 1000),
        )
        self._log_response(result)
        return result

    async def aclose(self) -> None:
        await self._client.close()


def map_status_error(status_code: int, message: str = "") -> TransportError:
    """Translate an HTTP status from the provider into the failure taxonomy."""
    if status_code == 402:
        return InsufficientQuota(message or "Insufficient credits on provider account")
    if status_code == 429:
        return RateLimited(message or "Rate limited by provider")
    return TransportError(message or f"HTTP error {status_code}", status_code=status_code)
