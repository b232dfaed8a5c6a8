"""
Classification Enums

Label sets and signal categories for the two classification domains.
"""
from enum import Enum
from typing import Dict, FrozenSet, Type


class Domain(str, Enum):
    """Independent classification axes."""
    PRIORITY = "priority"
    PROGRESS = "progress"


class PriorityLevel(str, Enum):
    """Business priority, P0 is most urgent."""
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"

    @property
    def display_name(self) -> str:
        return PRIORITY_DISPLAY_NAMES[self]


class ProgressState(str, Enum):
    """Work progress state."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"
    STALE = "stale"


class ItemType(str, Enum):
    """Kinds of work items entering the pipeline."""
    TASK = "task"
    EMAIL = "email"
    COMMIT = "commit"
    CHAT = "chat"


class ProgressSignalCategory(str, Enum):
    COMMITMENT = "commitment"
    ACTIVITY = "activity"
    BLOCKER = "blocker"
    COMPLETION = "completion"
    ESCALATION = "escalation"


class PrioritySignalCategory(str, Enum):
    VIP_SENDER = "vip_sender"
    DEADLINE = "deadline"
    URGENCY_KEYWORD = "urgency_keyword"
    ACTION_REQUIRED = "action_required"
    AGE_ESCALATION = "age_escalation"


PRIORITY_DISPLAY_NAMES: Dict[PriorityLevel, str] = {
    PriorityLevel.P0: "Critical",
    PriorityLevel.P1: "High",
    PriorityLevel.P2: "Medium",
    PriorityLevel.P3: "Low",
    PriorityLevel.P4: "Minimal",
}

# Default weight per signal category before source and recency adjustment
DEFAULT_SIGNAL_WEIGHTS: Dict[str, float] = {
    ProgressSignalCategory.COMPLETION.value: 0.40,
    ProgressSignalCategory.BLOCKER.value: 0.30,
    ProgressSignalCategory.ACTIVITY.value: 0.20,
    ProgressSignalCategory.COMMITMENT.value: 0.10,
    ProgressSignalCategory.ESCALATION.value: 0.10,
    PrioritySignalCategory.VIP_SENDER.value: 0.30,
    PrioritySignalCategory.DEADLINE.value: 0.25,
    PrioritySignalCategory.URGENCY_KEYWORD.value: 0.15,
    PrioritySignalCategory.ACTION_REQUIRED.value: 0.15,
    PrioritySignalCategory.AGE_ESCALATION.value: 0.15,
}


def label_enum(domain: Domain) -> Type[Enum]:
    """Label enum for a domain."""
    return PriorityLevel if Domain(domain) == Domain.PRIORITY else ProgressState


def category_enum(domain: Domain) -> Type[Enum]:
    """Signal category enum for a domain."""
    return PrioritySignalCategory if Domain(domain) == Domain.PRIORITY else ProgressSignalCategory


def valid_labels(domain: Domain) -> FrozenSet[str]:
    return frozenset(member.value for member in label_enum(domain))


def parse_label(domain: Domain, raw) -> "PriorityLevel | ProgressState | None":
    """
    Parse a model-provided label into the domain's enum.

    Accepts case and separator variants ("IN_PROGRESS", "In Progress", "p1").
    Returns None for anything outside the label set.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    enum_cls = label_enum(domain)
    if enum_cls is PriorityLevel:
        candidate = text.upper()
    else:
        candidate = text.lower().replace(" ", "_").replace("-", "_")
    try:
        return enum_cls(candidate)
    except ValueError:
        return None
