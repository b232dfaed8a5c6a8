"""
Signal Patterns

Regex families per signal category. Each pattern yields at most one signal
per text, so overlapping phrasings within a family add up deliberately.
"""
import re
from typing import Dict, List, Pattern

from beacon.constants import ProgressSignalCategory, PrioritySignalCategory


def _compile(patterns: List[str]) -> List[Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# ============================================
# PROGRESS
# ============================================

COMMITMENT_PATTERNS = _compile([
    r"\bwill (do|work on|start|implement|fix|handle|complete|address|review)\b",
    r"\bplanning to\b",
    r"\bassigned to me\b",
    r"\btaking this\b",
    r"\bi'll handle\b",
    r"\bi will handle\b",
    r"\bpicking up\b",
    r"\bstarting on\b",
    r"\bgoing to (work on|start|implement|fix)\b",
    r"\bon my list\b",
    r"\bi can do\b",
    r"\bi can take\b",
    r"\blet me (handle|take|do|work on)\b",
    r"\bi'll (do|take|work on|start)\b",
    r"\baccepting\b",
    r"\btaking ownership\b",
])

ACTIVITY_PATTERNS = _compile([
    r"\bworking on\b",
    r"\bin progress\b",
    r"\bupdated\b",
    r"\bpushed\b",
    r"\bcommitted\b",
    r"\bsent (for review|update|feedback)\b",
    r"\bmade changes\b",
    r"\bdrafted\b",
    r"\bimplementing\b",
    r"\bcoding\b",
    r"\bdeveloping\b",
    r"\btesting\b",
    r"\breviewing\b",
    r"\bdebugging\b",
    r"\binvestigating\b",
    r"\bcurrently (working|doing|looking)\b",
    r"\bstill working\b",
    r"\bmaking progress\b",
    r"\bhalfway (through|done)\b",
    r"\balmost (done|finished|complete)\b",
    r"\bwip\b",
    r"\bwork in progress\b",
])

BLOCKER_PATTERNS = _compile([
    r"\bblocked (by|on|due to)\b",
    r"\bwaiting (on|for)\b",
    r"\bdepends on\b",
    r"\bdependency\b",
    r"\bneed .+ first\b",
    r"\bcan'?t proceed\b",
    r"\bcannot proceed\b",
    r"\bstuck on\b",
    r"\bstuck at\b",
    r"\bpending .+ approval\b",
    r"\bawaiting\b",
    r"\bon hold\b",
    r"\bheld up\b",
    r"\bblocking issue\b",
    r"\bblocker\b",
    r"\bprerequisite\b",
    r"\bwaiting for (response|approval|feedback|input)\b",
    r"\bneed (input|feedback|approval|help) from\b",
    r"\bdependent on\b",
])

COMPLETION_PATTERNS = _compile([
    r"\bcompleted\b",
    r"\bdone\b",
    r"\bfinished\b",
    r"\bmerged\b",
    r"\bresolved\b",
    r"\bclosed\b",
    r"\bshipped\b",
    r"\bdeployed\b",
    r"\breleased\b",
    r"\bfixed\b",
    r"\bimplemented\b",
    r"\bdelivered\b",
    r"\baccomplished\b",
    r"\bwrapped up\b",
    r"\ball done\b",
    r"\btask complete\b",
    r"\bwork complete\b",
    r"\bchecked in\b",
    r"\bpushed to (main|master|production)\b",
    r"\blive now\b",
    r"\bgone live\b",
])

ESCALATION_PATTERNS = _compile([
    r"\burgent\b",
    r"\basap\b",
    r"\bimmediately\b",
    r"\bcritical\b",
    r"\bhigh priority\b",
    r"\bbumping this\b",
    r"\bfollowing up\b",
    r"\bany update\b",
    r"\breminder\b",
    r"\btime sensitive\b",
    r"\bdeadline\b",
])

# ============================================
# PRIORITY
# ============================================

DEADLINE_PATTERNS = _compile([
    r"\bdue (today|tomorrow|by|on|date)\b",
    r"\bdeadline\b",
    r"\bby (end of day|eod|cob|tomorrow|monday|tuesday|wednesday|thursday|friday)\b",
    r"\b(eod|cob|eow)\b",
    r"\bbefore (the )?(meeting|release|demo|launch)\b",
    r"\boverdue\b",
    r"\bexpires? (today|tomorrow|on)\b",
])

URGENCY_PATTERNS = _compile([
    r"\burgent\b",
    r"\basap\b",
    r"\bimmediately\b",
    r"\bcritical\b",
    r"\bemergency\b",
    r"\bhigh priority\b",
    r"\btime sensitive\b",
    r"\boutage\b",
    r"\bproduction (issue|down|incident)\b",
    r"\bsev ?[12]\b",
])

ACTION_REQUIRED_PATTERNS = _compile([
    r"\baction required\b",
    r"\bplease (review|approve|respond|confirm|sign)\b",
    r"\bneeds? your (input|approval|review|attention)\b",
    r"\bcan you\b",
    r"\bcould you\b",
    r"\brequest(ed)? for\b",
    r"\bapproval needed\b",
    r"\bawaiting your\b",
])

# ============================================
# REGISTRY
# ============================================

PROGRESS_PATTERNS: Dict[str, List[Pattern[str]]] = {
    ProgressSignalCategory.COMMITMENT.value: COMMITMENT_PATTERNS,
    ProgressSignalCategory.ACTIVITY.value: ACTIVITY_PATTERNS,
    ProgressSignalCategory.BLOCKER.value: BLOCKER_PATTERNS,
    ProgressSignalCategory.COMPLETION.value: COMPLETION_PATTERNS,
    ProgressSignalCategory.ESCALATION.value: ESCALATION_PATTERNS,
}

PRIORITY_PATTERNS: Dict[str, List[Pattern[str]]] = {
    PrioritySignalCategory.DEADLINE.value: DEADLINE_PATTERNS,
    PrioritySignalCategory.URGENCY_KEYWORD.value: URGENCY_PATTERNS,
    PrioritySignalCategory.ACTION_REQUIRED.value: ACTION_REQUIRED_PATTERNS,
}

# Ticket id formats: #123, PROJ-123, "bug 123", "work item 123"
TICKET_PATTERNS: List[Pattern[str]] = [
    re.compile(r"#(\d+)"),
    re.compile(r"\b([A-Z]{2,}-\d+)\b"),
    re.compile(r"\b(?:issue|bug|task|story|feature)[:#\s]*(\d+)\b", re.IGNORECASE),
    re.compile(r"\b(?:work item|workitem|wi)[:#\s]*(\d+)\b", re.IGNORECASE),
]

COMMIT_COMPLETION_PREFIXES = ("fix", "resolve", "close", "complete", "finish", "implement", "add", "merge")

WIP_PATTERN = re.compile(r"\bwip\b|\bwork in progress\b", re.IGNORECASE)
REPLY_PREFIX = re.compile(r"^\s*re:", re.IGNORECASE)
FORWARD_PREFIX = re.compile(r"^\s*(fwd?|fw):", re.IGNORECASE)
MENTION_PATTERN = re.compile(r"@[\w.\-]+")
HTML_TAG_PATTERN = re.compile(r"<[^>]+>")

BLOCKER_QUESTION_INDICATORS = (
    "when can", "when will", "can you", "could you", "need help",
    "any update", "status", "eta", "blocker", "blocked", "waiting", "stuck",
)

REOPEN_KEYWORDS = ("reopen", "reopened", "revert", "reverted", "rollback", "undo", "back to")
