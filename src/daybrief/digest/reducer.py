"""Reduce phase: fold every cluster brief into the final script."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from daybrief.digest.errors import PipelineStage, ReductionError
from daybrief.digest.models import ClusterBrief, DigestContext
from daybrief.digest.templates import check_stage_template, render_stage_template

logger = logging.getLogger(__name__)

REDUCE_PROMPT_FIELDS = frozenset(
    {
        "cluster_briefs",
        "digest_date",
        "total_items",
        "audio_count",
        "article_count",
        "spotlight_slug",
    }
)


def format_brief(brief: ClusterBrief) -> str:
    takeaways = "\n".join(f"- {t}" for t in brief.key_takeaways)
    lines = [
        f"Cluster {brief.display_index} ({brief.slug})",
        f"Title: {brief.cluster_title}",
        f"Urgency: {brief.urgency_label} ({brief.urgency_score}/5)",
        f"Narrative: {brief.narrative_paragraph}",
        "KeyTakeaways:",
        takeaways,
        f"Bridge: {brief.bridge_sentence}",
        f"Tags: {', '.join(brief.tags) or 'general'}",
    ]
    if brief.soundbite:
        lines.append(f"Soundbite: {brief.soundbite}")
    if brief.recommended_action:
        lines.append(f"Action: {brief.recommended_action}")
    return "\n".join(lines)


def pick_spotlight(briefs: Sequence[ClusterBrief]) -> str:
    """Slug of the most urgent cluster; the one whose items came first wins ties."""
    lead = max(briefs, key=lambda b: (b.urgency_score, -b.first_item_number))
    return lead.slug


class FinalReducer:
    """Produces the final digest text from the ordered cluster briefs.

    The model output is returned as-is: it is unstructured prose meant
    for a human listener.
    """

    def __init__(self, complete: Callable[[str], str], template: str) -> None:
        self._complete = complete
        self._template = check_stage_template(
            template, REDUCE_PROMPT_FIELDS, PipelineStage.REDUCING
        )

    def build_prompt(self, briefs: Sequence[ClusterBrief], context: DigestContext) -> str:
        ordered = sorted(briefs, key=lambda b: b.display_index)
        fields = {
            "cluster_briefs": "\n\n".join(format_brief(b) for b in ordered),
            "digest_date": context.digest_date.isoformat() if context.digest_date else "Today",
            "total_items": context.total_items if context.total_items is not None else 0,
            "audio_count": context.audio_count if context.audio_count is not None else 0,
            "article_count": context.article_count if context.article_count is not None else 0,
            "spotlight_slug": context.spotlight_slug or pick_spotlight(ordered),
        }
        return render_stage_template(self._template, fields, PipelineStage.REDUCING)

    def reduce(self, briefs: Sequence[ClusterBrief], context: DigestContext) -> str:
        """Run the single reduce call.

        Raises:
            ReductionError: No briefs were given, or the model call failed.
        """
        if not briefs:
            raise ReductionError("no cluster briefs to reduce")

        prompt = self.build_prompt(briefs, context)

        logger.debug("Reducing %d cluster brief(s)", len(briefs))
        try:
            return self._complete(prompt)
        except Exception as exc:
            raise ReductionError(f"model call failed: {exc}") from exc
