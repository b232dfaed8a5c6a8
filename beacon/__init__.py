"""
Beacon Triage - priority and progress classification for work items.
"""

__version__ = "0.1.0"
