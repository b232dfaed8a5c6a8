"""
Signal Extractor - deterministic evidence from item text

Scans titles, bodies, commit messages and chat content with the regex
families in `patterns.py` and turns every first match into a weighted
Signal. No I/O and no clock reads beyond the injectable `now`.
"""
import math
import re
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, Pattern, Sequence

from beacon.constants import (
    DEFAULT_SIGNAL_WEIGHTS,
    Domain,
    ItemType,
    PrioritySignalCategory,
    ProgressSignalCategory,
)
from beacon.data_transformers import WorkItem
from .models import Signal
from .patterns import (
    BLOCKER_QUESTION_INDICATORS,
    COMMIT_COMPLETION_PREFIXES,
    FORWARD_PREFIX,
    HTML_TAG_PATTERN,
    MENTION_PATTERN,
    PRIORITY_PATTERNS,
    PROGRESS_PATTERNS,
    REPLY_PREFIX,
    TICKET_PATTERNS,
    WIP_PATTERN,
)


# Source credibility, looked up on the base tag
SOURCE_MULTIPLIERS: Dict[str, float] = {
    "commit": 1.3,
    "email_subject": 1.2,
    "file": 1.1,
    "file_change": 1.1,
    "email": 1.0,
    "email_body": 1.0,
    "teams": 0.9,
    "teams_message": 0.9,
    "chat": 0.9,
}

RECENCY_WINDOW_SECONDS = 24 * 3600
RECENCY_BOOST = 1.2
TITLE_BOOST = 1.2

CONTEXT_RADIUS = 30
CONTEXT_MAX_CHARS = 100

# Fixed weights for structural cues
REPLY_ACTIVITY_WEIGHT = 0.7
FORWARD_ESCALATION_WEIGHT = 0.5
MENTION_ACTIVITY_WEIGHT = 0.9
QUESTION_BLOCKER_WEIGHT = 0.6

AGE_ESCALATION_MIN_DAYS = 2
AGE_ESCALATION_CAP = 0.30

_SOURCE_SUFFIXES = ("_title", "_related")


def base_source(source: str) -> str:
    """Provenance tag without the `_title` / `_related` suffix."""
    base = source or ""
    for suffix in _SOURCE_SUFFIXES:
        if base.endswith(suffix):
            base = base[: -len(suffix)]
    return base


def source_multiplier(source: str) -> float:
    """Credibility multiplier for a provenance tag (suffixes ignored)."""
    return SOURCE_MULTIPLIERS.get(base_source(source), 1.0)


def extract_ticket_ids(text: str) -> List[str]:
    """Ticket ids in first-seen order, deduplicated."""
    found: List[str] = []
    if not text:
        return found
    for pattern in TICKET_PATTERNS:
        for match in pattern.finditer(text):
            ticket = match.group(1)
            if ticket not in found:
                found.append(ticket)
    return found


def extract_context(text: str, start: int, end: int) -> str:
    """Snippet around a match, capped with a trailing marker."""
    lo = max(start - CONTEXT_RADIUS, 0)
    hi = min(end + CONTEXT_RADIUS, len(text))
    snippet = text[lo:hi]
    if len(snippet) > CONTEXT_MAX_CHARS:
        snippet = snippet[:CONTEXT_MAX_CHARS] + "..."
    return snippet.strip()


def age_escalation_weight(created_at: datetime, now: datetime) -> float:
    """min(log2(days) * 0.05, 0.30) for items at least two whole days old, else 0."""
    days = int((now - created_at).total_seconds() // 86400)
    if days < AGE_ESCALATION_MIN_DAYS:
        return 0.0
    return min(math.log2(days) * 0.05, AGE_ESCALATION_CAP)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class SignalExtractor:
    """
    Pattern-based signal extraction for one classification domain.

    Example:
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract("Blocked by security review", "email_body")
    """

    def __init__(
        self,
        domain: Domain = Domain.PROGRESS,
        vip_emails: Iterable[str] = (),
        patterns: Optional[Dict[str, List[Pattern[str]]]] = None,
    ):
        """
        Args:
            domain: Which label axis the signals feed
            vip_emails: Sender allow-list for the vip_sender signal (priority only)
            patterns: Override of the category -> regex family table
        """
        self.domain = Domain(domain)
        self.vip_emails: FrozenSet[str] = frozenset(e.strip().lower() for e in vip_emails if e and e.strip())
        if patterns is not None:
            self.patterns = patterns
        elif self.domain == Domain.PRIORITY:
            self.patterns = PRIORITY_PATTERNS
        else:
            self.patterns = PROGRESS_PATTERNS

    # ============================================
    # CORE
    # ============================================

    def extract(
        self,
        text: str,
        source: str,
        related_id: Optional[str] = None,
        *,
        observed_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
        boost: float = 1.0,
    ) -> List[Signal]:
        """
        Extract signals from a piece of text.

        Args:
            text: Raw text to scan
            source: Provenance tag, also selects the source multiplier
            related_id: Item the text belongs to; defaults to the first ticket id found
            observed_at: When the text was produced (defaults to now)
            now: Reference time for the recency booster
            boost: Extra multiplier (title text uses 1.2)

        Returns:
            One signal per matching pattern, in family order
        """
        if not text or not text.strip():
            return []

        now = now or datetime.now()
        observed_at = observed_at or now
        tickets = tuple(extract_ticket_ids(text))
        related = related_id if related_id is not None else (tickets[0] if tickets else None)

        signals: List[Signal] = []
        for category, family in self.patterns.items():
            base_weight = DEFAULT_SIGNAL_WEIGHTS.get(category, 0.1)
            for pattern in family:
                match = pattern.search(text)
                if match is None:
                    continue
                signals.append(self._make_signal(
                    category=category,
                    raw_weight=base_weight * source_multiplier(source) * boost,
                    source=source,
                    context=extract_context(text, match.start(), match.end()),
                    observed_at=observed_at,
                    now=now,
                    related_id=related,
                    tickets=tickets,
                ))
        return signals

    def _make_signal(
        self,
        category: str,
        raw_weight: float,
        source: str,
        context: str,
        observed_at: datetime,
        now: datetime,
        related_id: Optional[str],
        tickets: Sequence[str] = (),
    ) -> Signal:
        weight = raw_weight
        if (now - observed_at).total_seconds() <= RECENCY_WINDOW_SECONDS:
            weight *= RECENCY_BOOST
        return Signal(
            category=category,
            weight=_clamp(weight),
            source=source,
            context=context,
            detected_at=observed_at,
            related_id=related_id,
            ticket_refs=tuple(tickets),
        )

    # ============================================
    # SOURCE-SPECIFIC HELPERS
    # ============================================

    def extract_email(
        self,
        subject: str,
        body: str,
        item_id: Optional[str] = None,
        *,
        observed_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> List[Signal]:
        """Subject (boosted) and body signals plus reply/forward cues."""
        now = now or datetime.now()
        observed_at = observed_at or now
        signals = self.extract(subject, "email_subject", item_id, observed_at=observed_at, now=now, boost=TITLE_BOOST)
        signals += self.extract(body, "email_body", item_id, observed_at=observed_at, now=now)

        if self.domain != Domain.PROGRESS or not subject:
            return signals

        tickets = extract_ticket_ids(f"{subject}\n{body or ''}")
        if REPLY_PREFIX.match(subject):
            signals.append(self._make_signal(
                ProgressSignalCategory.ACTIVITY.value, REPLY_ACTIVITY_WEIGHT, "email",
                "Reply chain indicates ongoing activity", observed_at, now, item_id, tickets,
            ))
        if FORWARD_PREFIX.match(subject):
            signals.append(self._make_signal(
                ProgressSignalCategory.ESCALATION.value, FORWARD_ESCALATION_WEIGHT, "email",
                "Forwarded email may indicate escalation", observed_at, now, item_id, tickets,
            ))
        return signals

    def extract_commit(
        self,
        message: str,
        related_id: Optional[str] = None,
        *,
        observed_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> List[Signal]:
        """Commit message signals: WIP marker, completion prefixes, then patterns."""
        if not message:
            return []
        now = now or datetime.now()
        observed_at = observed_at or now
        tickets = extract_ticket_ids(message)
        related = related_id if related_id is not None else (tickets[0] if tickets else None)
        normalized = message.strip().lower()
        signals: List[Signal] = []

        if self.domain == Domain.PROGRESS:
            multiplier = source_multiplier("commit")
            wip = WIP_PATTERN.search(message)
            if wip:
                signals.append(self._make_signal(
                    ProgressSignalCategory.ACTIVITY.value,
                    DEFAULT_SIGNAL_WEIGHTS[ProgressSignalCategory.ACTIVITY.value] * multiplier,
                    "commit", extract_context(message, wip.start(), wip.end()),
                    observed_at, now, related, tickets,
                ))
            for prefix in COMMIT_COMPLETION_PREFIXES:
                if normalized.startswith(prefix) or f"{prefix}:" in normalized or f"{prefix}(" in normalized:
                    signals.append(self._make_signal(
                        ProgressSignalCategory.COMPLETION.value,
                        DEFAULT_SIGNAL_WEIGHTS[ProgressSignalCategory.COMPLETION.value] * multiplier,
                        "commit", extract_context(message, 0, min(50, len(message))),
                        observed_at, now, related, tickets,
                    ))
                    break

        signals += self.extract(message, "commit", related, observed_at=observed_at, now=now)
        return signals

    def extract_chat(
        self,
        content: str,
        message_id: Optional[str] = None,
        *,
        observed_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> List[Signal]:
        """Chat message signals; HTML is stripped before matching."""
        if not content:
            return []
        now = now or datetime.now()
        observed_at = observed_at or now
        text = re.sub(r"\s+", " ", HTML_TAG_PATTERN.sub(" ", content)).strip()
        signals = self.extract(text, "teams_message", message_id, observed_at=observed_at, now=now)

        if self.domain != Domain.PROGRESS:
            return signals

        tickets = extract_ticket_ids(text)
        if MENTION_PATTERN.search(text):
            signals.append(self._make_signal(
                ProgressSignalCategory.ACTIVITY.value, MENTION_ACTIVITY_WEIGHT, "teams_message",
                "Direct mention indicates engagement", observed_at, now, message_id, tickets,
            ))
        if "?" in text:
            question = _question_sentence(text)
            lowered = question.lower()
            if any(indicator in lowered for indicator in BLOCKER_QUESTION_INDICATORS):
                signals.append(self._make_signal(
                    ProgressSignalCategory.BLOCKER.value, QUESTION_BLOCKER_WEIGHT, "teams_message",
                    question[:CONTEXT_MAX_CHARS], observed_at, now, message_id, tickets,
                ))
        return signals

    # ============================================
    # ITEM-LEVEL
    # ============================================

    def extract_for_item(
        self,
        item: WorkItem,
        related_items: Sequence[WorkItem] = (),
        *,
        now: Optional[datetime] = None,
    ) -> List[Signal]:
        """
        All signals for a work item, including evidence from correlated items.

        Args:
            item: The item being classified
            related_items: Items sharing a ticket reference with `item`
            now: Reference time

        Returns:
            Signals from title, content, structural cues and related items
        """
        now = now or datetime.now()
        signals = self._extract_item_text(item, now=now)

        for related in related_items:
            tag = f"{_item_source_tag(related)}_related"
            text = "\n".join(part for part in (related.title, related.content) if part)
            signals += self.extract(text, tag, related.id, observed_at=related.updated_at, now=now)

        if self.domain == Domain.PRIORITY:
            signals += self._priority_item_signals(item, now)

        return signals

    def _extract_item_text(self, item: WorkItem, now: datetime) -> List[Signal]:
        observed_at = item.updated_at
        if item.item_type == ItemType.EMAIL:
            return self.extract_email(item.title, item.content, item.id, observed_at=observed_at, now=now)
        if item.item_type == ItemType.COMMIT:
            message = "\n".join(part for part in (item.title, item.content) if part)
            return self.extract_commit(message, item.id, observed_at=observed_at, now=now)
        if item.item_type == ItemType.CHAT:
            return self.extract_chat(item.content or item.title, item.id, observed_at=observed_at, now=now)

        tag = _item_source_tag(item)
        signals = self.extract(item.title, f"{tag}_title", item.id, observed_at=observed_at, now=now, boost=TITLE_BOOST)
        signals += self.extract(item.content, tag, item.id, observed_at=observed_at, now=now)
        return signals

    def _priority_item_signals(self, item: WorkItem, now: datetime) -> List[Signal]:
        signals: List[Signal] = []
        tickets = list(item.ticket_refs)
        if item.sender and item.sender.strip().lower() in self.vip_emails:
            signals.append(self._make_signal(
                PrioritySignalCategory.VIP_SENDER.value,
                DEFAULT_SIGNAL_WEIGHTS[PrioritySignalCategory.VIP_SENDER.value],
                "email" if item.item_type == ItemType.EMAIL else _item_source_tag(item),
                f"From VIP sender {item.sender}", item.updated_at, now, item.id, tickets,
            ))

        age_weight = age_escalation_weight(item.created_at, now)
        if age_weight > 0:
            # Age evidence is as old as the item, never boosted for recency
            signals.append(Signal(
                category=PrioritySignalCategory.AGE_ESCALATION.value,
                weight=age_weight,
                source=_item_source_tag(item),
                context=f"Open for {int(item.age_days(now))} days",
                detected_at=item.created_at,
                related_id=item.id,
                ticket_refs=tuple(tickets),
            ))
        return signals


def _item_source_tag(item: WorkItem) -> str:
    if item.item_type == ItemType.COMMIT:
        return "commit"
    if item.item_type == ItemType.CHAT:
        return "teams_message"
    if item.item_type == ItemType.EMAIL:
        return "email"
    return item.source or "task"


def _question_sentence(text: str) -> str:
    for sentence in re.split(r"[.!]", text):
        if "?" in sentence:
            return sentence.strip()
    return text
