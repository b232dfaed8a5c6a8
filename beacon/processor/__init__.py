"""
Processor Module - the classification core

Components:
- signals: deterministic signal extraction
- request_builder: batch prompts and response schema
- gateway: inference call and response decoding
- resolver: scores, confidence arithmetic, transition gate, staleness
- heuristics: local progress decisions for hybrid mode
- retry: backoff policy for inference
- pipeline: the per-domain chain tying them together
"""

from .models import Score, LedgerEntry, AnalysisEntry, InferenceResult, PipelineResult
from .pipeline import ClassificationPipeline

__all__ = [
    "Score",
    "LedgerEntry",
    "AnalysisEntry",
    "InferenceResult",
    "PipelineResult",
    "ClassificationPipeline",
]
