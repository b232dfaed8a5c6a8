"""
Data Transformers Module

Normalizes source-specific work items into the canonical WorkItem.
"""

from .models import (
    WorkItem,
    TaskItem,
    EmailItem,
    CommitItem,
    ChatMessageItem,
    SourceItem,
    normalize,
    CONTENT_EXCERPT_CHARS,
)

__all__ = [
    "WorkItem",
    "TaskItem",
    "EmailItem",
    "CommitItem",
    "ChatMessageItem",
    "SourceItem",
    "normalize",
    "CONTENT_EXCERPT_CHARS",
]
