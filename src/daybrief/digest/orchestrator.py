"""Sequence the digest pipeline: batch, map, cluster, brief, reduce."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from enum import StrEnum

from daybrief.digest.clustering import cluster_beats
from daybrief.digest.errors import EmptyInputError, PipelineStage
from daybrief.digest.extractor import StructuredMapExtractor
from daybrief.digest.fanout import fan_out
from daybrief.digest.models import (
    Beat,
    Cluster,
    ClusterBrief,
    ContentItem,
    DigestContext,
    DigestSettings,
    PromptTemplates,
)
from daybrief.digest.reducer import FinalReducer
from daybrief.digest.synthesizer import ClusterBriefSynthesizer
from daybrief.digest.tokens import batch_texts, get_token_stats

logger = logging.getLogger(__name__)


class RunState(StrEnum):
    """Lifecycle of a single digest run."""

    IDLE = "idle"
    BATCHING = "batching"
    MAPPING = "mapping"
    CLUSTERING = "clustering"
    SYNTHESIZING = "synthesizing"
    REDUCING = "reducing"
    DONE = "done"
    FAILED = "failed"


_STAGE_FOR_STATE: dict[RunState, PipelineStage] = {
    RunState.BATCHING: PipelineStage.BATCHING,
    RunState.MAPPING: PipelineStage.MAPPING,
    RunState.CLUSTERING: PipelineStage.CLUSTERING,
    RunState.SYNTHESIZING: PipelineStage.SYNTHESIZING,
    RunState.REDUCING: PipelineStage.REDUCING,
}


class DigestRun:
    """Record of one ``generate_digest`` call.

    Pass one in to observe the state machine; each call otherwise gets a
    private run, so concurrent calls share nothing.
    """

    def __init__(self) -> None:
        self.state = RunState.IDLE
        self.history: list[RunState] = [RunState.IDLE]
        self.failed_stage: PipelineStage | None = None
        self.cause: BaseException | None = None
        self.batch_count = 0
        self.beat_count = 0
        self.cluster_count = 0
        self.result: str | None = None

    @property
    def stage(self) -> PipelineStage | None:
        return _STAGE_FOR_STATE.get(self.state)

    def advance(self, state: RunState) -> None:
        if self.state in (RunState.DONE, RunState.FAILED):
            raise RuntimeError(f"run already finished ({self.state})")
        self.state = state
        self.history.append(state)

    def fail(self, stage: PipelineStage, cause: BaseException) -> None:
        self.failed_stage = stage
        self.cause = cause
        self.state = RunState.FAILED
        self.history.append(RunState.FAILED)


def split_into_batches(
    items: Sequence[ContentItem], settings: DigestSettings
) -> list[list[ContentItem]]:
    """Batch items by the token size of their summaries, keeping order."""
    text_batches = batch_texts(
        [item.summary for item in items],
        settings.max_tokens_per_batch,
        settings.chars_per_token,
    )
    batches: list[list[ContentItem]] = []
    start = 0
    for text_batch in text_batches:
        batches.append(list(items[start : start + len(text_batch)]))
        start += len(text_batch)
    return batches


def number_items(items: Sequence[ContentItem]) -> list[ContentItem]:
    """Assign run-stable 1-based item numbers by position."""
    return [item.model_copy(update={"item_number": n}) for n, item in enumerate(items, start=1)]


class DigestOrchestrator:
    """Runs the map-reduce digest pipeline against an injected model call.

    Args:
        complete: ``complete(prompt) -> text`` model capability. Must be
            safe to call from several threads at once.
        templates: Map, cluster-brief and reduce prompt templates.
        settings: Batching, concurrency and clustering tunables.

    Raises:
        PromptTemplateError: A template uses a placeholder its stage does
            not supply. Checked here, before any model call is paid for.
    """

    def __init__(
        self,
        complete: Callable[[str], str],
        templates: PromptTemplates | None = None,
        settings: DigestSettings | None = None,
    ) -> None:
        self._templates = templates or PromptTemplates()
        self._settings = settings or DigestSettings()
        self._extractor = StructuredMapExtractor(complete, self._templates.map_template)
        self._synthesizer = ClusterBriefSynthesizer(complete, self._templates.cluster_template)
        self._reducer = FinalReducer(complete, self._templates.reduce_template)

    @property
    def settings(self) -> DigestSettings:
        return self._settings

    def generate_digest(
        self,
        items: Sequence[ContentItem],
        context: DigestContext | None = None,
        *,
        run: DigestRun | None = None,
    ) -> str:
        """Produce the final digest text for ``items``.

        Args:
            items: Content items in display order.
            context: Run metadata; missing counts are derived from ``items``.
            run: Optional run record to observe state transitions.

        Returns:
            The final digest text, exactly as the model wrote it.

        Raises:
            EmptyInputError: ``items`` is empty (no model call is made).
            DigestError: Any stage failed; ``.stage`` names which one.
        """
        run = run or DigestRun()
        try:
            result = self._execute(run, items, context or DigestContext())
        except Exception as exc:
            stage = run.stage or PipelineStage.BATCHING
            run.fail(stage, exc)
            logger.error("Digest generation failed during %s: %s", stage, exc)
            raise
        run.result = result
        run.advance(RunState.DONE)
        return result

    def _execute(
        self, run: DigestRun, items: Sequence[ContentItem], context: DigestContext
    ) -> str:
        run.advance(RunState.BATCHING)
        if not items:
            raise EmptyInputError("no content items supplied")

        numbered = number_items(items)
        context = context.with_counts_from(numbered)

        stats = get_token_stats([item.summary for item in numbered], self._settings.chars_per_token)
        logger.info(
            "Starting digest: %d items (%d audio, %d articles), ~%d tokens",
            len(numbered),
            context.audio_count,
            context.article_count,
            stats.total_tokens,
        )

        batches = split_into_batches(numbered, self._settings)
        run.batch_count = len(batches)
        logger.info("Created %d batch(es) for map phase", len(batches))

        run.advance(RunState.MAPPING)
        beats = self._map(batches)
        run.beat_count = len(beats)
        logger.info("Map phase completed: %d beats", len(beats))

        run.advance(RunState.CLUSTERING)
        clusters = cluster_beats(beats, self._settings.min_shared_tags)
        run.cluster_count = len(clusters)
        logger.info(
            "Clustering completed: %d cluster(s) %s",
            len(clusters),
            [c.slug for c in clusters],
        )

        run.advance(RunState.SYNTHESIZING)
        briefs = self._synthesize(clusters)
        logger.info("Cluster briefs completed: %d", len(briefs))

        run.advance(RunState.REDUCING)
        digest = self._reducer.reduce(briefs, context)
        logger.info("Digest generation completed: %d characters", len(digest))
        return digest

    def _map(self, batches: list[list[ContentItem]]) -> list[Beat]:
        per_batch = fan_out(
            self._extractor.extract,
            batches,
            max_workers=self._settings.max_concurrency,
            label="map",
        )
        return [beat for batch_beats in per_batch for beat in batch_beats]

    def _synthesize(self, clusters: list[Cluster]) -> list[ClusterBrief]:
        briefs = fan_out(
            lambda _index, cluster: self._synthesizer.synthesize(cluster),
            clusters,
            max_workers=self._settings.max_concurrency,
            label="brief",
        )
        return sorted(briefs, key=lambda b: b.display_index)
