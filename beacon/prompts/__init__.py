"""
Prompts Module - rubric templates for batch classification.

Prompt Files:
- priority_analysis.md: P0-P4 priority rubric
- progress_analysis.md: progress state rubric
"""

from ._loader import PromptLoader, list_prompts

__all__ = [
    "PromptLoader",
    "list_prompts",
]
