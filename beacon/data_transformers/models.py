"""
Unified Data Models for Work Items

Every source (task tracker, mailbox, git history, chat) produces one of the
variant dataclasses below. The pipeline only ever sees the canonical
WorkItem produced by `normalize()`, so adding a source means adding a
variant, not teaching the classifier about it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, List, Any, Union

from beacon.constants import ItemType


# Characters of content sent to the model per item
CONTENT_EXCERPT_CHARS = 500


@dataclass
class WorkItem:
    """
    Canonical work item consumed by the classification pipeline.

    Read-only to the pipeline: the store owns its lifecycle.
    """
    id: str
    item_type: ItemType
    source: str                      # azure_devops, outlook, gmail, teams, git, ...
    title: str
    content: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    external_id: Optional[str] = None
    sender: Optional[str] = None     # Email address, used for VIP matching
    ticket_refs: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.item_type, str):
            self.item_type = ItemType(self.item_type)

    def age_days(self, now: Optional[datetime] = None) -> float:
        """Days since creation."""
        now = now or datetime.now()
        return max((now - self.created_at).total_seconds() / 86400.0, 0.0)

    @property
    def truncated_content(self) -> str:
        """Content excerpt used in prompts."""
        text = (self.content or "").strip()
        if len(text) <= CONTENT_EXCERPT_CHARS:
            return text
        return text[:CONTENT_EXCERPT_CHARS] + "..."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "item_type": self.item_type.value,
            "source": self.source,
            "title": self.title,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "external_id": self.external_id,
            "sender": self.sender,
            "ticket_refs": list(self.ticket_refs),
            "metadata": dict(self.metadata),
        }


# ============================================
# SOURCE VARIANTS
# ============================================

@dataclass
class TaskItem:
    """Ticket from a task tracker (Azure DevOps, Jira, ...)."""
    id: str
    title: str
    description: str = ""
    state: Optional[str] = None
    assigned_to: Optional[str] = None
    source: str = "azure_devops"
    external_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    tags: List[str] = field(default_factory=list)

    def normalize(self) -> WorkItem:
        metadata: Dict[str, Any] = {}
        if self.state:
            metadata["state"] = self.state
        if self.assigned_to:
            metadata["assigned_to"] = self.assigned_to
        if self.tags:
            metadata["tags"] = list(self.tags)
        return WorkItem(
            id=self.id,
            item_type=ItemType.TASK,
            source=self.source,
            title=self.title,
            content=self.description or "",
            created_at=self.created_at,
            updated_at=self.updated_at,
            external_id=self.external_id,
            ticket_refs=[self.external_id] if self.external_id else [],
            metadata=metadata,
        )


@dataclass
class EmailItem:
    """Message from a mailbox (Outlook, Gmail)."""
    id: str
    subject: str
    body: str = ""
    sender: Optional[str] = None
    recipients: List[str] = field(default_factory=list)
    source: str = "outlook"
    thread_id: Optional[str] = None
    received_at: datetime = field(default_factory=datetime.now)

    def normalize(self) -> WorkItem:
        return WorkItem(
            id=self.id,
            item_type=ItemType.EMAIL,
            source=self.source,
            title=self.subject,
            content=self.body or "",
            created_at=self.received_at,
            updated_at=self.received_at,
            external_id=self.thread_id,
            sender=self.sender.strip().lower() if self.sender else None,
            metadata={"recipients": list(self.recipients)} if self.recipients else {},
        )


@dataclass
class CommitItem:
    """Commit from a git repository."""
    sha: str
    message: str
    author: Optional[str] = None
    repository: Optional[str] = None
    files_changed: List[str] = field(default_factory=list)
    committed_at: datetime = field(default_factory=datetime.now)

    def normalize(self) -> WorkItem:
        lines = (self.message or "").strip().splitlines()
        title = lines[0] if lines else self.sha[:12]
        body = "\n".join(lines[1:]).strip()
        metadata: Dict[str, Any] = {}
        if self.repository:
            metadata["repository"] = self.repository
        if self.files_changed:
            metadata["files_changed"] = list(self.files_changed)
        return WorkItem(
            id=f"commit_{self.sha}",
            item_type=ItemType.COMMIT,
            source="git",
            title=title,
            content=body,
            created_at=self.committed_at,
            updated_at=self.committed_at,
            external_id=self.sha,
            sender=self.author,
            metadata=metadata,
        )


@dataclass
class ChatMessageItem:
    """Message from a chat channel (Teams)."""
    id: str
    content: str
    sender: Optional[str] = None
    channel: Optional[str] = None
    source: str = "teams"
    sent_at: datetime = field(default_factory=datetime.now)

    def normalize(self) -> WorkItem:
        # Chat has no subject; the first line stands in as the title
        first_line = (self.content or "").strip().split("\n", 1)[0]
        return WorkItem(
            id=self.id,
            item_type=ItemType.CHAT,
            source=self.source,
            title=first_line[:120],
            content=self.content or "",
            created_at=self.sent_at,
            updated_at=self.sent_at,
            sender=self.sender,
            metadata={"channel": self.channel} if self.channel else {},
        )


SourceItem = Union[TaskItem, EmailItem, CommitItem, ChatMessageItem]


def normalize(item: Union[SourceItem, WorkItem]) -> WorkItem:
    """
    Convert any source variant into the canonical WorkItem.

    Raises:
        TypeError: If the item is not one of the known variants
    """
    if isinstance(item, WorkItem):
        return item
    if isinstance(item, (TaskItem, EmailItem, CommitItem, ChatMessageItem)):
        return item.normalize()
    raise TypeError(f"Unsupported work item type: {type(item).__name__}")
