"""Map phase: one model call per batch, parsed into beats."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence

from pydantic import ValidationError

from daybrief.digest.errors import CollaboratorError, ExtractionError, PipelineStage
from daybrief.digest.models import Beat, ContentItem
from daybrief.digest.templates import check_stage_template, render_stage_template
from daybrief.llm import load_json_output

logger = logging.getLogger(__name__)

MAP_PROMPT_FIELDS = frozenset({"batch_summaries"})


def format_item(item: ContentItem) -> str:
    """Render one content item as an ``[ITEM n]`` block for the map prompt."""
    content_type = "🎧 Audio" if item.is_audio else "📄 Article"
    source_name = item.source.display_name

    meta_parts: list[str] = []
    if item.runtime_minutes is not None:
        meta_parts.append(f"{item.runtime_minutes} min runtime")
    if item.reading_minutes is not None:
        meta_parts.append(f"{item.reading_minutes} min read")
    if item.sentiment:
        meta_parts.append(f"tone: {item.sentiment}")

    lines = [
        f"[ITEM {item.item_number}]",
        f"Type: {content_type}",
        f"Title: {item.title or source_name}",
        f"Source: {source_name}",
        f"Captured: {item.created_at.isoformat()}",
    ]
    if meta_parts:
        lines.append(f"Meta: {' · '.join(meta_parts)}")
    lines.append("Summary:")
    lines.append(item.summary or "No summary available")
    lines.append("---")
    return "\n".join(lines)


def format_batch(items: Sequence[ContentItem]) -> str:
    return "\n\n".join(format_item(item) for item in items)


class StructuredMapExtractor:
    """Turns a batch of content items into beats with a single model call.

    The whole batch succeeds or fails together; a response that does not
    match the batch item-for-item is rejected rather than patched up.
    """

    def __init__(self, complete: Callable[[str], str], template: str) -> None:
        self._complete = complete
        self._template = check_stage_template(template, MAP_PROMPT_FIELDS, PipelineStage.MAPPING)

    def build_prompt(self, items: Sequence[ContentItem]) -> str:
        return render_stage_template(
            self._template, {"batch_summaries": format_batch(items)}, PipelineStage.MAPPING
        )

    def extract(self, batch_index: int, items: Sequence[ContentItem]) -> list[Beat]:
        """Extract one beat per item, in item order.

        Args:
            batch_index: 0-based position of the batch, used in errors and logs.
            items: The batch's content items.

        Returns:
            Beats whose ``item_number`` values match ``items`` in order.

        Raises:
            CollaboratorError: The model call failed.
            ExtractionError: The response is not a matching beat array.
        """
        batch_id = f"batch {batch_index + 1}"
        prompt = self.build_prompt(items)

        logger.debug("Extracting beats for %s (%d items)", batch_id, len(items))
        try:
            response = self._complete(prompt)
        except Exception as exc:
            raise CollaboratorError(
                f"model call failed: {exc}",
                stage=PipelineStage.MAPPING,
                identifier=batch_id,
            ) from exc

        return parse_beats(response, items, batch_id=batch_id)


def parse_beats(response: str, items: Sequence[ContentItem], *, batch_id: str) -> list[Beat]:
    """Validate a map response against the batch it was produced for."""
    try:
        payload = load_json_output(response)
    except json.JSONDecodeError as exc:
        raise ExtractionError(
            f"response is not valid JSON: {exc}", identifier=batch_id, raw_output=response
        ) from exc

    if not isinstance(payload, list):
        raise ExtractionError(
            f"expected a JSON array, got {type(payload).__name__}",
            identifier=batch_id,
            raw_output=response,
        )

    if len(payload) != len(items):
        raise ExtractionError(
            f"expected {len(items)} beats, got {len(payload)}",
            identifier=batch_id,
            raw_output=response,
        )

    beats: list[Beat] = []
    for position, (raw, item) in enumerate(zip(payload, items, strict=True)):
        if not isinstance(raw, dict):
            raise ExtractionError(
                f"beat {position} is {type(raw).__name__}, not an object",
                identifier=batch_id,
                raw_output=response,
            )
        try:
            beat = Beat.model_validate({k: v for k, v in raw.items() if v is not None})
        except ValidationError as exc:
            raise ExtractionError(
                f"beat {position} failed validation: {exc}",
                identifier=batch_id,
                raw_output=response,
            ) from exc
        if beat.item_number != item.item_number:
            raise ExtractionError(
                f"beat {position} has item_number {beat.item_number}, "
                f"expected {item.item_number}",
                identifier=batch_id,
                raw_output=response,
            )
        beats.append(beat)

    return beats
