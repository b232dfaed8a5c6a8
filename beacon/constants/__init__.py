"""
Constants package for Beacon Triage.

Contains label sets, signal categories and default weights.
"""

from .enums import (
    Domain,
    PriorityLevel,
    ProgressState,
    ItemType,
    ProgressSignalCategory,
    PrioritySignalCategory,
    PRIORITY_DISPLAY_NAMES,
    DEFAULT_SIGNAL_WEIGHTS,
    label_enum,
    category_enum,
    valid_labels,
    parse_label,
)

__all__ = [
    "Domain",
    "PriorityLevel",
    "ProgressState",
    "ItemType",
    "ProgressSignalCategory",
    "PrioritySignalCategory",
    "PRIORITY_DISPLAY_NAMES",
    "DEFAULT_SIGNAL_WEIGHTS",
    "label_enum",
    "category_enum",
    "valid_labels",
    "parse_label",
]
