"""
Classification Request Builder

Turns a batch of work items plus their extracted signals into one prompt
and the JSON schema the model must answer with.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence

from beacon.constants import Domain, category_enum, label_enum
from beacon.data_transformers import WorkItem
from beacon.exceptions import BatchTooLarge
from beacon.prompts import PromptLoader
from .signals import Signal, summarize_signals

MAX_BATCH_SIZE = 10
MAX_RELATED_IN_PROMPT = 3
RELATED_TITLE_CHARS = 50
SIGNAL_CONTEXT_CHARS = 60

PROMPT_NAMES = {
    Domain.PRIORITY: "priority_analysis",
    Domain.PROGRESS: "progress_analysis",
}


@dataclass
class ClassificationRequest:
    """One batched inference request."""
    domain: Domain
    prompt: str
    schema_name: str
    schema: Dict[str, Any]
    items: List[WorkItem] = field(default_factory=list)

    @property
    def response_format(self) -> Dict[str, Any]:
        """OpenAI-style structured output directive."""
        return {
            "type": "json_schema",
            "json_schema": {
                "name": self.schema_name,
                "strict": True,
                "schema": self.schema,
            },
        }


def build_schema(domain: Domain) -> Dict[str, Any]:
    """JSON schema for the `analyses` response of a domain."""
    domain = Domain(domain)
    signal_types = [c.value for c in category_enum(domain)]
    if domain == Domain.PRIORITY:
        signal_types.append("ambiguous")

    signal_schema = {
        "type": "object",
        "properties": {
            "type": {"type": "string", "enum": signal_types},
            "weight": {"type": "number", "minimum": 0, "maximum": 1},
            "description": {"type": "string"},
        },
        "required": ["type", "weight", "description"],
        "additionalProperties": False,
    }

    properties: Dict[str, Any] = {
        "item_index": {"type": "integer"},
        "label": {"type": "string", "enum": [m.value for m in label_enum(domain)]},
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "reasoning": {"type": "string"},
        "signals": {"type": "array", "items": signal_schema},
    }
    if domain == Domain.PROGRESS:
        properties["last_activity"] = {"type": ["string", "null"]}

    analysis_schema = {
        "type": "object",
        "properties": properties,
        "required": list(properties.keys()),
        "additionalProperties": False,
    }

    return {
        "type": "object",
        "properties": {
            "analyses": {"type": "array", "items": analysis_schema},
        },
        "required": ["analyses"],
        "additionalProperties": False,
    }


class ClassificationRequestBuilder:
    """
    Build batch prompts for one domain.

    Example:
        builder = ClassificationRequestBuilder(Domain.PROGRESS)
        request = builder.build(items, signals_by_item, related_by_item)
    """

    def __init__(
        self,
        domain: Domain,
        vip_emails: FrozenSet[str] = frozenset(),
        staleness_days: int = 3,
        max_batch_size: int = MAX_BATCH_SIZE,
        prompt_loader: Optional[PromptLoader] = None,
    ):
        self.domain = Domain(domain)
        self.vip_emails = vip_emails
        self.staleness_days = staleness_days
        self.max_batch_size = min(max_batch_size, MAX_BATCH_SIZE)
        self.prompt_loader = prompt_loader or PromptLoader()

    def build(
        self,
        items: Sequence[WorkItem],
        signals_by_item: Optional[Mapping[str, Sequence[Signal]]] = None,
        related_by_item: Optional[Mapping[str, Sequence[WorkItem]]] = None,
        now: Optional[datetime] = None,
    ) -> ClassificationRequest:
        """
        Build the request for a batch.

        Args:
            items: Items to classify; their position is the `item_index`
            signals_by_item: Extracted signals keyed by item id
            related_by_item: Correlated items keyed by item id
            now: Reference time for item ages

        Raises:
            BatchTooLarge: If more items are given than one request allows
        """
        if len(items) > self.max_batch_size:
            raise BatchTooLarge(len(items), self.max_batch_size)

        now = now or datetime.now()
        signals_by_item = signals_by_item or {}
        related_by_item = related_by_item or {}

        blocks = [
            self._format_item(
                index,
                item,
                signals_by_item.get(item.id, ()),
                related_by_item.get(item.id, ()),
                now,
            )
            for index, item in enumerate(items)
        ]

        variables: Dict[str, Any] = {
            "item_count": len(items),
            "items": "\n".join(blocks),
        }
        if self.domain == Domain.PRIORITY:
            variables["vip_senders"] = ", ".join(sorted(self.vip_emails)) or "None configured"
        else:
            variables["staleness_days"] = self.staleness_days

        prompt = self.prompt_loader.format(PROMPT_NAMES[self.domain], **variables)
        return ClassificationRequest(
            domain=self.domain,
            prompt=prompt,
            schema_name=PROMPT_NAMES[self.domain],
            schema=build_schema(self.domain),
            items=list(items),
        )

    def _format_item(
        self,
        index: int,
        item: WorkItem,
        signals: Sequence[Signal],
        related: Sequence[WorkItem],
        now: datetime,
    ) -> str:
        age = int(item.age_days(now))
        lines = [
            f"[{index}] {item.item_type.value.upper()}: {item.title}",
            f"    Source: {item.source}",
            f"    Age: {age} day{'' if age == 1 else 's'}",
        ]
        if self.domain == Domain.PRIORITY and item.sender:
            lines.append(f"    From: {item.sender}")
        lines.append(f"    Content: {item.truncated_content}")

        if related:
            lines.append(f"    Related items: {len(related)}")
            for other in list(related)[:MAX_RELATED_IN_PROMPT]:
                lines.append(f"      - {other.item_type.value}: {other.title[:RELATED_TITLE_CHARS]}")

        if signals:
            lines.append("    Detected signals:")
            for category, members in summarize_signals(signals).items():
                for signal in members:
                    lines.append(
                        f"      - {category} (weight: {signal.weight:.2f}): "
                        f"\"{signal.context[:SIGNAL_CONTEXT_CHARS]}\""
                    )
        lines.append("---")
        return "\n".join(lines)
