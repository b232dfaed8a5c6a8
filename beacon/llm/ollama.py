"""
Ollama Client - local models over the /api/chat endpoint.
"""
import time
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from beacon.exceptions import TransportError
from .base import LLMClient, LLMResponse, Message
from .openrouter import map_status_error


class OllamaClient(LLMClient):
    """
    Ollama client using httpx.

    Structured output is passed through Ollama's `format` field: the JSON
    schema when one is given, otherwise plain "json".
    """

    supports_structured_output = True

    def __init__(
        self,
        model: str = "llama3.2",
        host: str = "http://localhost:11434",
        request_timeout: float = 120.0,
        resource_timeout: float = 300.0,
        verify_ssl: bool = True,
    ):
        super().__init__(model)
        self.host = host.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.host,
            timeout=httpx.Timeout(resource_timeout, read=request_timeout, connect=10.0),
            verify=verify_ssl,
        )

    async def chat(
        self,
        messages: List[Message],
        system: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: float = 0.3,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": self._build_messages(messages, system),
            "stream": False,
            "format": "json",
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        schema = (response_format or {}).get("json_schema", {}).get("schema")
        if schema:
            payload["format"] = schema

        logger.debug(f"Ollama request: model={self.model}, host={self.host}")
        started = time.monotonic()

        try:
            response = await self._client.post("/api/chat", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise map_status_error(e.response.status_code, f"Ollama HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Ollama request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Ollama returned a non-JSON body: {e}", response.status_code) from e
        if not isinstance(data, dict):
            raise TransportError("Ollama returned an unexpected response body", response.status_code)

        input_tokens = data.get("prompt_eval_count")
        output_tokens = data.get("eval_count")
        usage = {}
        if input_tokens is not None or output_tokens is not None:
            usage = {"input_tokens": input_tokens or 0, "output_tokens": output_tokens or 0}

        result = LLMResponse(
            content=(data.get("message") or {}).get("content", ""),
            model=data.get("model", self.model),
            usage=usage,
            stop_reason=data.get("done_reason"),
            latency_ms=int((time.monotonic() - started) * 1000),
        )
        self._log_response(result)
        return result

    async def aclose(self) -> None:
        await self._client.aclose()
