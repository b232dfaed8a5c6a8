"""
LLM Client Base - Abstract base class for async LLM providers.
"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger


@dataclass
class LLMResponse:
    """Standard response from LLM."""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)  # input_tokens, output_tokens, total_tokens
    stop_reason: Optional[str] = None
    latency_ms: Optional[int] = None

    @property
    def total_tokens(self) -> Optional[int]:
        """Provider-reported token count, None when the provider reported nothing."""
        if not self.usage:
            return None
        if self.usage.get("total_tokens"):
            return self.usage["total_tokens"]
        return self.usage.get("input_tokens", 0) + self.usage.get("output_tokens", 0)


@dataclass
class Message:
    """Chat message."""
    role: str  # "user", "assistant", "system"
    content: str


class LLMClient(ABC):
    """
    Abstract base class for async LLM clients.

    Implementations translate provider failures into the exceptions in
    `beacon.exceptions` (RateLimited, InsufficientQuota, TransportError)
    so callers never see SDK-specific errors.
    """

    #: Whether the provider honours a JSON-schema `response_format`
    supports_structured_output: bool = False

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def chat(
        self,
        messages: List[Message],
        system: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: float = 0.3,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """
        Generate a response from a conversation.

        Args:
            messages: Conversation messages
            system: Optional system prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            response_format: Structured output directive, ignored by
                providers that don't support it

        Returns:
            LLMResponse with generated content
        """

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: float = 0.3,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """Generate a response from a single user prompt."""
        return await self.chat(
            [Message(role="user", content=prompt)],
            system=system,
            max_tokens=max_tokens,
            temperature=temperature,
            response_format=response_format,
        )

    async def aclose(self) -> None:
        """Release network resources."""

    @staticmethod
    def _build_messages(messages: List[Message], system: Optional[str] = None) -> List[Dict[str, str]]:
        result = []
        if system:
            result.append({"role": "system", "content": system})
        for msg in messages:
            result.append({"role": msg.role, "content": msg.content})
        return result

    @staticmethod
    def _check_valid_json(content: str) -> bool:
        try:
            json.loads(content)
            return True
        except (json.JSONDecodeError, TypeError):
            return False

    def _log_response(self, response: LLMResponse) -> None:
        logger.debug(
            f"{self.__class__.__name__} response: model={response.model}, "
            f"tokens={response.total_tokens}, latency={response.latency_ms}ms, "
            f"valid_json={self._check_valid_json(response.content)}"
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model})"
