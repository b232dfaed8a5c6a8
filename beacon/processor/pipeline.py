"""
Classification Pipeline - one domain's extraction -> inference -> resolution chain

Flow:
1. Extract signals per item (own text plus correlated items)
2. Progress in hybrid mode: resolve confident items from heuristics
3. Build one batch request for the rest and run it under the retry policy
4. Resolve the model's analyses against current scores

Persistence is left to the caller so upsert, analysed-marking and the
ledger row can be written in one place.
"""
import asyncio
import random
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from beacon.config import HarnessConfig
from beacon.constants import Domain
from beacon.data_transformers import WorkItem
from beacon.exceptions import InferenceError, SchemaViolation
from beacon.llm import LLMClient
from .gateway import InferenceGateway
from .heuristics import HEURISTIC_MODEL_ID, determine_state
from .models import PipelineResult, Score
from .request_builder import ClassificationRequestBuilder
from .resolver import ScoreResolver
from .retry import with_retry
from .signals import Signal, SignalExtractor


class ClassificationPipeline:
    """
    Per-domain classification chain.

    Example:
        pipeline = ClassificationPipeline(config, client)
        result = await pipeline.run(items, related_by_item, existing_scores)
    """

    def __init__(
        self,
        config: HarnessConfig,
        client: LLMClient,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        """
        Args:
            config: Domain configuration
            client: LLM client used by the inference gateway
            sleep: Backoff sleep, injectable for tests
            rand: Jitter source, injectable for tests
        """
        self.config = config
        self.domain = Domain(config.domain)
        self.extractor = SignalExtractor(self.domain, vip_emails=config.vip_emails)
        self.builder = ClassificationRequestBuilder(
            self.domain,
            vip_emails=config.vip_emails,
            staleness_days=config.staleness_days,
            max_batch_size=config.batch_size,
        )
        self.gateway = InferenceGateway(
            client,
            structured=config.structured_output and client.supports_structured_output,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
        self.resolver = ScoreResolver(self.domain)
        self._sleep = sleep
        self._rand = rand

    @property
    def hybrid(self) -> bool:
        return self.domain == Domain.PROGRESS and self.config.use_hybrid

    def extract_signals(
        self,
        items: Sequence[WorkItem],
        related_by_item: Mapping[str, Sequence[WorkItem]],
        now: datetime,
    ) -> Dict[str, List[Signal]]:
        return {
            item.id: self.extractor.extract_for_item(item, related_by_item.get(item.id, ()), now=now)
            for item in items
        }

    async def run(
        self,
        items: Sequence[WorkItem],
        related_by_item: Optional[Mapping[str, Sequence[WorkItem]]] = None,
        existing_scores: Optional[Mapping[str, Score]] = None,
        now: Optional[datetime] = None,
    ) -> PipelineResult:
        """
        Classify a batch.

        Inference failures don't raise: they are returned on
        `result.error` together with whatever was resolved locally.

        Args:
            items: Pending items, at most the configured batch size
            related_by_item: Correlated items per item id
            existing_scores: Current scores per item id
            now: Reference time

        Returns:
            Scores to upsert, ids to mark analysed and token usage
        """
        now = now or datetime.now()
        related_by_item = related_by_item or {}
        existing_scores = existing_scores or {}
        result = PipelineResult()

        signals_by_item = self.extract_signals(items, related_by_item, now)

        model_items: List[WorkItem] = list(items)
        if self.hybrid:
            model_items = self._resolve_locally(items, signals_by_item, existing_scores, now, result)

        if not model_items:
            return result

        request = self.builder.build(model_items, signals_by_item, related_by_item, now=now)
        result.items_sent_to_model = len(model_items)

        try:
            inference = await with_retry(
                lambda: self.gateway.infer(request),
                self.config.retry,
                sleep=self._sleep,
                rand=self._rand,
                label=f"{self.domain.value} inference",
            )
        except SchemaViolation as e:
            logger.warning(f"Dropping {self.domain.value} batch of {len(model_items)}: {e}")
            result.tokens_used = e.total_tokens
            result.model_used = e.model or self.config.model
            result.error = e
            return result
        except InferenceError as e:
            logger.error(f"{self.domain.value} inference failed: {e}")
            # Nothing reached the model's output, nothing to charge
            result.items_sent_to_model = 0
            result.error = e
            return result

        result.tokens_used = inference.total_tokens
        result.model_used = inference.model or self.config.model

        resolution = self.resolver.resolve(
            model_items,
            inference.analyses,
            signals_by_item,
            existing_scores,
            result.model_used,
            now=now,
        )
        result.scores.extend(resolution.scores)
        result.analyzed_item_ids.extend(resolution.analyzed_item_ids)
        result.dropped_count += resolution.dropped
        return result

    def _resolve_locally(
        self,
        items: Sequence[WorkItem],
        signals_by_item: Mapping[str, Sequence[Signal]],
        existing_scores: Mapping[str, Score],
        now: datetime,
        result: PipelineResult,
    ) -> List[WorkItem]:
        """Resolve confident items from heuristics, return the rest."""
        local_items: List[WorkItem] = []
        local_entries = []
        remaining: List[WorkItem] = []

        for item in items:
            heuristic = determine_state(signals_by_item.get(item.id, ()))
            if heuristic.confidence >= self.config.hybrid_confidence_threshold:
                local_entries.append(heuristic.to_analysis(len(local_items)))
                local_items.append(item)
            else:
                remaining.append(item)

        if local_items:
            resolution = self.resolver.resolve(
                local_items, local_entries, signals_by_item, existing_scores, HEURISTIC_MODEL_ID, now=now,
            )
            result.scores.extend(resolution.scores)
            result.analyzed_item_ids.extend(resolution.analyzed_item_ids)
            result.heuristic_count = len(local_items)
            logger.debug(f"Heuristics resolved {len(local_items)} of {len(items)} items")

        return remaining
