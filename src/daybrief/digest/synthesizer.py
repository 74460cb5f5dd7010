"""Cluster briefs: one model call per cluster."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable

from pydantic import ValidationError

from daybrief.digest.errors import CollaboratorError, PipelineStage, SynthesisError
from daybrief.digest.models import Beat, Cluster, ClusterBrief
from daybrief.digest.templates import check_stage_template, render_stage_template
from daybrief.llm import load_json_output

logger = logging.getLogger(__name__)

CLUSTER_PROMPT_FIELDS = frozenset(
    {
        "cluster_slug",
        "candidate_titles",
        "cluster_tags",
        "cluster_urgency",
        "cluster_formats",
        "cluster_items",
    }
)

_BRIEF_FIELDS = (
    "cluster_title",
    "narrative_paragraph",
    "key_takeaways",
    "bridge_sentence",
    "soundbite",
    "recommended_action",
)


def format_beat(beat: Beat) -> str:
    facts = "\n".join(f"    • {fact}" for fact in beat.fast_facts)
    lines = [
        f"Item {beat.item_number}:",
        f"  Headline: {beat.headline}",
        f"  Urgency: {beat.urgency_label} ({beat.urgency_score}/5)",
        f"  Why it matters: {beat.why_it_matters}",
        "  Fast facts:",
        facts,
        f"  Soundbite: {beat.soundbite}",
        f"  Format: {beat.format_cue}",
        f"  Tags: {', '.join(beat.tags)}",
    ]
    if beat.segment_title:
        lines.insert(1, f"  Segment: {beat.segment_title}")
    if beat.action_step:
        lines.append(f"  Action: {beat.action_step}")
    if beat.forward_signal:
        lines.append(f"  Watch next: {beat.forward_signal}")
    if beat.source_notes:
        lines.append(f"  Source: {beat.source_notes}")
    return "\n".join(lines)


class ClusterBriefSynthesizer:
    """Turns a cluster's beats into a single narrative brief."""

    def __init__(self, complete: Callable[[str], str], template: str) -> None:
        self._complete = complete
        self._template = check_stage_template(
            template, CLUSTER_PROMPT_FIELDS, PipelineStage.SYNTHESIZING
        )

    def build_prompt(self, cluster: Cluster) -> str:
        fields = {
            "cluster_slug": cluster.slug,
            "candidate_titles": " | ".join(cluster.candidate_titles) or cluster.slug,
            "cluster_tags": ", ".join(cluster.tags) or "general",
            "cluster_urgency": f"{cluster.urgency_label} ({cluster.urgency_score}/5)",
            "cluster_formats": " | ".join(cluster.format_cues) or "mixed",
            "cluster_items": "\n\n".join(format_beat(beat) for beat in cluster.beats),
        }
        return render_stage_template(self._template, fields, PipelineStage.SYNTHESIZING)

    def synthesize(self, cluster: Cluster) -> ClusterBrief:
        """Produce the brief for ``cluster``.

        Raises:
            CollaboratorError: The model call failed.
            SynthesisError: The response is not a valid brief object.
        """
        prompt = self.build_prompt(cluster)

        logger.debug(
            "Synthesizing brief for cluster %d (%s, %d beats)",
            cluster.display_index,
            cluster.slug,
            len(cluster.beats),
        )
        try:
            response = self._complete(prompt)
        except Exception as exc:
            raise CollaboratorError(
                f"model call failed: {exc}",
                stage=PipelineStage.SYNTHESIZING,
                identifier=cluster.slug,
            ) from exc

        return parse_brief(response, cluster)


def parse_brief(response: str, cluster: Cluster) -> ClusterBrief:
    """Validate a cluster-brief response and attach the cluster's identity."""
    try:
        payload = load_json_output(response)
    except json.JSONDecodeError as exc:
        raise SynthesisError(
            f"response is not valid JSON: {exc}", identifier=cluster.slug, raw_output=response
        ) from exc

    if not isinstance(payload, dict):
        raise SynthesisError(
            f"expected a JSON object, got {type(payload).__name__}",
            identifier=cluster.slug,
            raw_output=response,
        )

    data = {key: payload[key] for key in _BRIEF_FIELDS if payload.get(key) is not None}
    data.update(
        slug=cluster.slug,
        display_index=cluster.display_index,
        first_item_number=cluster.first_item_number,
        tags=cluster.tags,
        urgency_score=cluster.urgency_score,
        urgency_label=cluster.urgency_label,
    )
    try:
        return ClusterBrief.model_validate(data)
    except ValidationError as exc:
        raise SynthesisError(
            f"brief failed validation: {exc}", identifier=cluster.slug, raw_output=response
        ) from exc
