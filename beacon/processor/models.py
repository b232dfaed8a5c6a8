"""
Data models shared across the classification pipeline.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from beacon.constants import Domain
from .signals.models import Signal


@dataclass
class Score:
    """
    Current classification of one item in one domain.

    At most one live Score exists per (item_id, domain); writes are upserts.
    """
    item_id: str
    domain: Domain
    label: str
    confidence: float
    reasoning: str = ""
    signals: List[Signal] = field(default_factory=list)
    model_signals: List[str] = field(default_factory=list)
    is_manual_override: bool = False
    scored_at: datetime = field(default_factory=datetime.now)
    model_used: Optional[str] = None
    last_activity_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.domain, str):
            self.domain = Domain(self.domain)
        self.confidence = max(0.0, min(1.0, float(self.confidence)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "domain": self.domain.value,
            "label": self.label,
            "confidence": round(self.confidence, 4),
            "reasoning": self.reasoning,
            "signals": [s.to_dict() for s in self.signals],
            "model_signals": list(self.model_signals),
            "is_manual_override": self.is_manual_override,
            "scored_at": self.scored_at.isoformat(),
            "model_used": self.model_used,
            "last_activity_at": self.last_activity_at.isoformat() if self.last_activity_at else None,
        }


@dataclass
class LedgerEntry:
    """One token-usage row in the daily budget ledger."""
    run_date: date
    domain: Domain
    items_processed: int
    tokens_used: int
    model_used: Optional[str] = None
    estimated: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if isinstance(self.domain, str):
            self.domain = Domain(self.domain)


@dataclass
class AnalysisEntry:
    """One element of the model's `analyses` array, as returned."""
    item_index: Any
    label: Any
    confidence: Any = 0.5
    reasoning: str = ""
    signals: List[str] = field(default_factory=list)
    last_activity: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisEntry":
        label = data.get("label")
        if label is None:
            label = data.get("level", data.get("state"))
        raw_signals = data.get("signals")
        if raw_signals is None:
            raw_signals = data.get("signals_considered") or []
        if not isinstance(raw_signals, list):
            raw_signals = [raw_signals]
        return cls(
            item_index=data.get("item_index"),
            label=label,
            confidence=data.get("confidence", 0.5),
            reasoning=str(data.get("reasoning") or ""),
            signals=[_describe_model_signal(s) for s in raw_signals],
            last_activity=data.get("last_activity"),
        )


def _describe_model_signal(raw: Any) -> str:
    # {"type": "blocker", "weight": 0.3, "description": "..."} -> "blocker: ..."
    if isinstance(raw, dict):
        kind = raw.get("type", "signal")
        description = raw.get("description", "")
        return f"{kind}: {description}" if description else str(kind)
    return str(raw)


@dataclass
class InferenceResult:
    """Parsed model response for a batch."""
    analyses: List[AnalysisEntry]
    model: Optional[str] = None
    total_tokens: Optional[int] = None
    raw_content: str = ""


@dataclass
class PipelineResult:
    """Outcome of one extraction -> inference -> resolution chain."""
    scores: List[Score] = field(default_factory=list)
    analyzed_item_ids: List[str] = field(default_factory=list)
    items_sent_to_model: int = 0
    tokens_used: Optional[int] = None
    model_used: Optional[str] = None
    heuristic_count: int = 0
    dropped_count: int = 0
    error: Optional[Exception] = None
