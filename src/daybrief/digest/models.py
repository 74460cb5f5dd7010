"""Pure data models for the digest pipeline.

All Pydantic models and enums live here. No I/O, no model calls.
Every record is frozen: stages produce new records rather than
mutating the ones they receive.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from datetime import date, datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from daybrief.digest import prompts

# ---------------------------------------------------------------------------
# Content enums
# ---------------------------------------------------------------------------


class ContentSource(StrEnum):
    """Kinds of saved content a digest can draw on."""

    VIDEO = "video"
    AUDIO_EPISODE = "audio-episode"
    ARTICLE = "article"
    SOCIAL_POST = "social-post"
    NEWSLETTER = "newsletter"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _SOURCE_NAMES[self]

    @property
    def is_audio(self) -> bool:
        return self in (ContentSource.VIDEO, ContentSource.AUDIO_EPISODE)


_SOURCE_NAMES: dict[ContentSource, str] = {
    ContentSource.VIDEO: "Video",
    ContentSource.AUDIO_EPISODE: "Podcast Episode",
    ContentSource.ARTICLE: "Web Article",
    ContentSource.SOCIAL_POST: "Social Post",
    ContentSource.NEWSLETTER: "Newsletter",
    ContentSource.OTHER: "Other Content",
}

UrgencyLabel = Literal["Immediate", "High", "Watch", "Background"]

URGENCY_RANK: dict[str, int] = {
    "Background": 0,
    "Watch": 1,
    "High": 2,
    "Immediate": 3,
}

# Non-empty string that must arrive as a string (no int -> str coercion)
_Text = Annotated[str, Field(strict=True, min_length=1)]

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SLUG_SPACE_RE = re.compile(r"\s+")
_SLUG_DASH_RE = re.compile(r"-+")
_TAG_SPLIT_RE = re.compile(r"[,\s]+")

_WORDS_PER_MINUTE = 200


def slugify(value: str) -> str:
    """Normalize free text to a lowercase hyphenated slug ('' if nothing survives)."""
    slug = _SLUG_STRIP_RE.sub("", value.strip().lower())
    slug = _SLUG_SPACE_RE.sub("-", slug)
    slug = _SLUG_DASH_RE.sub("-", slug)
    return slug.strip("-")


def normalize_tags(tags: Sequence[str]) -> tuple[str, ...]:
    """Split, lowercase and dedupe tags, keeping first-appearance order."""
    seen: dict[str, None] = {}
    for tag in tags:
        for part in _TAG_SPLIT_RE.split(tag):
            part = part.strip().lower()
            if part:
                seen.setdefault(part, None)
    return tuple(seen)


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class ContentItem(BaseModel):
    """One saved piece of content, already summarized upstream.

    Beats refer back to items through ``item_number``, which is 1-based
    and stable for the whole run.
    """

    model_config = ConfigDict(frozen=True)

    # 0 until the orchestrator numbers the run's items from 1
    item_number: int = Field(default=0, ge=0)
    summary: str = ""
    source: ContentSource
    title: str | None = None
    duration: float | None = Field(default=None, ge=0)
    word_count: int | None = Field(default=None, ge=0)
    sentiment: Literal["positive", "negative", "neutral"] | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_audio(self) -> bool:
        return self.source.is_audio

    @property
    def runtime_minutes(self) -> int | None:
        if not self.is_audio or not self.duration:
            return None
        return max(1, round(self.duration / 60))

    @property
    def reading_minutes(self) -> int | None:
        if self.is_audio or not self.word_count:
            return None
        return max(1, math.ceil(self.word_count / _WORDS_PER_MINUTE))


# ---------------------------------------------------------------------------
# Map phase
# ---------------------------------------------------------------------------


class Beat(BaseModel):
    """Structured extraction of one content item."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    item_number: int = Field(strict=True, ge=1)
    group_key: _Text
    headline: _Text
    why_it_matters: _Text
    urgency_score: int = Field(strict=True, ge=1, le=5)
    urgency_label: UrgencyLabel
    fast_facts: tuple[_Text, ...] = Field(min_length=1)
    soundbite: _Text
    format_cue: _Text
    tags: tuple[_Text, ...] = Field(min_length=1)

    segment_title: str = ""
    action_step: str = ""
    forward_signal: str = ""
    source_notes: str = ""

    @field_validator("group_key")
    @classmethod
    def _slug_group_key(cls, value: str) -> str:
        slug = slugify(value)
        if not slug:
            raise ValueError(f"group_key {value!r} has no slug characters")
        return slug

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        tags = normalize_tags(value)
        if not tags:
            raise ValueError("tags must contain at least one word")
        return tags

    @property
    def urgency_rank(self) -> tuple[int, int]:
        return (self.urgency_score, URGENCY_RANK[self.urgency_label])


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------


class Cluster(BaseModel):
    """Beats grouped under one theme.

    ``display_index`` is 1-based and only used for labels such as
    "Cluster 1".
    """

    model_config = ConfigDict(frozen=True)

    slug: str
    display_index: int = Field(ge=1)
    beats: tuple[Beat, ...] = Field(min_length=1)
    tags: tuple[str, ...] = ()
    format_cues: tuple[str, ...] = ()
    urgency_score: int
    urgency_label: UrgencyLabel

    @property
    def member_item_numbers(self) -> tuple[int, ...]:
        return tuple(beat.item_number for beat in self.beats)

    @property
    def first_item_number(self) -> int:
        return min(self.member_item_numbers)

    @property
    def candidate_titles(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(beat.headline for beat in self.beats))


class ClusterBrief(BaseModel):
    """Narrative synthesis of one cluster."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    cluster_title: _Text
    narrative_paragraph: _Text
    key_takeaways: tuple[_Text, ...]
    bridge_sentence: _Text
    soundbite: str = ""
    recommended_action: str = ""

    # Copied from the source cluster, not produced by the model
    slug: str
    display_index: int = Field(ge=1)
    first_item_number: int = Field(ge=1)
    tags: tuple[str, ...] = ()
    urgency_score: int = Field(default=1, ge=1, le=5)
    urgency_label: UrgencyLabel = "Background"

    @field_validator("key_takeaways")
    @classmethod
    def _distinct_takeaways(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        distinct = {t.strip().lower() for t in value}
        if len(distinct) < 2:
            raise ValueError("key_takeaways needs at least two distinct entries")
        return value


# ---------------------------------------------------------------------------
# Run context and settings
# ---------------------------------------------------------------------------


class DigestContext(BaseModel):
    """Run-level metadata fed into the reduce prompt."""

    model_config = ConfigDict(frozen=True)

    digest_date: date | None = None
    total_items: int | None = Field(default=None, ge=0)
    audio_count: int | None = Field(default=None, ge=0)
    article_count: int | None = Field(default=None, ge=0)
    spotlight_slug: str | None = None

    @classmethod
    def from_items(
        cls,
        items: Sequence[ContentItem],
        *,
        digest_date: date | None = None,
        spotlight_slug: str | None = None,
    ) -> DigestContext:
        """Build a context whose counts are derived from ``items``."""
        return cls(digest_date=digest_date, spotlight_slug=spotlight_slug).with_counts_from(items)

    def with_counts_from(self, items: Sequence[ContentItem]) -> DigestContext:
        """Return a copy with any missing counts filled in from ``items``."""
        audio = sum(1 for item in items if item.is_audio)
        return self.model_copy(
            update={
                "total_items": self.total_items if self.total_items is not None else len(items),
                "audio_count": self.audio_count if self.audio_count is not None else audio,
                "article_count": (
                    self.article_count
                    if self.article_count is not None
                    else len(items) - audio
                ),
            }
        )


class DigestSettings(BaseModel):
    """Tunables for a digest run."""

    max_tokens_per_batch: int = Field(default=30000, gt=0)
    chars_per_token: int = Field(default=4, gt=0)
    max_concurrency: int = Field(default=4, ge=1)
    min_shared_tags: int = Field(default=1, ge=1)


class PromptTemplates(BaseModel):
    """The three prompt templates, each with ``{named}`` placeholders."""

    map_template: str = prompts.MAP_PROMPT
    cluster_template: str = prompts.CLUSTER_BRIEF_PROMPT
    reduce_template: str = prompts.REDUCE_PROMPT
