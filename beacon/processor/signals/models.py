"""
Data models for the signals module.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Signal:
    """
    A weighted piece of evidence found in item text.

    Signals are immutable once extracted. They are never stored on their own,
    only as part of a Score's audit trail.
    """
    category: str
    weight: float
    source: str                       # Provenance tag: commit, email_subject, teams_related, ...
    context: str                      # Text snippet around the match
    detected_at: datetime
    related_id: Optional[str] = None
    ticket_refs: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "weight": round(self.weight, 4),
            "source": self.source,
            "context": self.context,
            "detected_at": self.detected_at.isoformat(),
            "related_id": self.related_id,
            "ticket_refs": list(self.ticket_refs),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Signal":
        detected_at = data.get("detected_at")
        if isinstance(detected_at, str):
            detected_at = datetime.fromisoformat(detected_at)
        return cls(
            category=data["category"],
            weight=float(data.get("weight", 0.0)),
            source=data.get("source", ""),
            context=data.get("context", ""),
            detected_at=detected_at or datetime.now(),
            related_id=data.get("related_id"),
            ticket_refs=tuple(data.get("ticket_refs") or ()),
        )
