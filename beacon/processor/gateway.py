"""
Inference Gateway

Sends a ClassificationRequest to the LLM client and decodes the
`analyses` array. Two modes:

- structured: the request carries a json_schema response_format
- fallback: plain chat; the reply may be wrapped in a ```json fence

Both modes go through the same lenient parse.
"""
import json
from typing import Any, Dict, List, Optional

from loguru import logger

from beacon.exceptions import SchemaViolation
from beacon.llm import LLMClient
from .models import AnalysisEntry, InferenceResult
from .request_builder import ClassificationRequest

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 2048

_FENCE = "```"


def strip_code_fence(content: str) -> str:
    """
    Pull the JSON out of a fenced block anywhere in the reply.

    A ```json fence wins over a bare ``` fence. Text outside the fence is
    ignored; a reply without a closed fence is returned trimmed.
    """
    text = (content or "").strip()
    lowered = text.lower()
    for opener in (_FENCE + "json", _FENCE):
        start = lowered.find(opener)
        if start == -1:
            continue
        body_start = start + len(opener)
        end = text.find(_FENCE, body_start)
        if end != -1:
            return text[body_start:end].strip()
    # Unterminated fence: drop the opening line only
    if text.startswith(_FENCE):
        text = text.split("\n", 1)[1] if "\n" in text else ""
    return text.strip()


def parse_analyses(content: str) -> List[AnalysisEntry]:
    """
    Decode a model reply into analysis entries.

    Raises:
        SchemaViolation: Reply is not JSON, or `analyses` is missing or not a list
    """
    text = strip_code_fence(content)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaViolation(f"Response is not valid JSON: {e}", raw_content=content) from e

    if not isinstance(data, dict):
        raise SchemaViolation("Response root is not an object", raw_content=content)

    analyses = data.get("analyses")
    if not isinstance(analyses, list):
        raise SchemaViolation("Response has no 'analyses' list", raw_content=content)

    # Non-object entries carry nothing we can map back to an item
    return [AnalysisEntry.from_dict(entry) for entry in analyses if isinstance(entry, dict)]


class InferenceGateway:
    """
    Example:
        gateway = InferenceGateway(client)
        result = await gateway.infer(request)
        for entry in result.analyses: ...
    """

    def __init__(
        self,
        client: LLMClient,
        structured: Optional[bool] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        """
        Args:
            client: LLM client; its errors already follow the failure taxonomy
            structured: Force a mode; defaults to what the client supports
            temperature: Sampling temperature
            max_tokens: Completion token cap
        """
        self.client = client
        self.structured = client.supports_structured_output if structured is None else structured
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def mode(self) -> str:
        return "structured" if self.structured else "fallback"

    async def infer(self, request: ClassificationRequest) -> InferenceResult:
        """
        Run one inference call for a batch.

        Raises:
            RateLimited, InsufficientQuota, TransportError: Provider failures
            SchemaViolation: Reply could not be decoded
        """
        response_format: Optional[Dict[str, Any]] = request.response_format if self.structured else None
        logger.debug(f"Inference ({self.mode}) for {len(request.items)} {request.domain.value} items")

        response = await self.client.generate(
            request.prompt,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_format=response_format,
        )

        try:
            analyses = parse_analyses(response.content)
        except SchemaViolation as e:
            e.model = response.model
            e.total_tokens = response.total_tokens
            raise
        return InferenceResult(
            analyses=analyses,
            model=response.model,
            total_tokens=response.total_tokens,
            raw_content=response.content,
        )
