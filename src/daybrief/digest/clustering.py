"""Group beats into theme clusters.

Beats are first grouped by exact ``group_key``. Separate batches often
invent different slugs for the same story ("market-pulse" vs
"macro-brief"), so candidate groups that share tags are then merged
transitively. The earliest candidate names the merged cluster.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from daybrief.digest.models import Beat, Cluster

logger = logging.getLogger(__name__)


class _Candidate:
    __slots__ = ("slug", "beat_indices", "tags")

    def __init__(self, slug: str) -> None:
        self.slug = slug
        self.beat_indices: list[int] = []
        self.tags: dict[str, None] = {}


def _find(parents: list[int], i: int) -> int:
    while parents[i] != i:
        parents[i] = parents[parents[i]]
        i = parents[i]
    return i


def _union(parents: list[int], a: int, b: int) -> None:
    root_a, root_b = _find(parents, a), _find(parents, b)
    if root_a == root_b:
        return
    # The lower index always becomes the root, so the first-seen slug wins
    if root_b < root_a:
        root_a, root_b = root_b, root_a
    parents[root_b] = root_a


def cluster_beats(beats: Sequence[Beat], min_shared_tags: int = 1) -> list[Cluster]:
    """Partition ``beats`` into clusters.

    Every beat lands in exactly one cluster. The result is deterministic
    for a given beat sequence: clusters are ordered (and numbered from 1)
    by the position of their first beat, and beats keep their input
    order inside each cluster.

    Args:
        beats: All beats of the run, in batch-then-item order.
        min_shared_tags: How many tags two candidate groups must share
            to be merged.

    Returns:
        Clusters in display order.
    """
    if min_shared_tags < 1:
        raise ValueError("min_shared_tags must be at least 1")
    if not beats:
        return []

    # 1. Seed one candidate per distinct group_key, in first-appearance order
    candidates: list[_Candidate] = []
    by_key: dict[str, _Candidate] = {}
    for index, beat in enumerate(beats):
        candidate = by_key.get(beat.group_key)
        if candidate is None:
            candidate = _Candidate(beat.group_key)
            by_key[beat.group_key] = candidate
            candidates.append(candidate)
        candidate.beat_indices.append(index)
        for tag in beat.tags:
            candidate.tags.setdefault(tag, None)

    # 2. Merge candidates whose tag sets overlap (transitively)
    parents = list(range(len(candidates)))
    tag_sets = [set(c.tags) for c in candidates]
    for i in range(len(candidates)):
        for j in range(i + 1, len(candidates)):
            if len(tag_sets[i] & tag_sets[j]) >= min_shared_tags:
                _union(parents, i, j)

    groups: dict[int, list[int]] = {}
    for i in range(len(candidates)):
        groups.setdefault(_find(parents, i), []).append(i)

    # 3. Build clusters; roots are the earliest candidate of each group, so
    #    sorting by root orders clusters by first beat appearance
    clusters: list[Cluster] = []
    for display_index, root in enumerate(sorted(groups), start=1):
        member_indices = sorted(
            index for c in groups[root] for index in candidates[c].beat_indices
        )
        clusters.append(
            _build_cluster(
                slug=candidates[root].slug,
                display_index=display_index,
                beats=[beats[i] for i in member_indices],
            )
        )

    merged = len(candidates) - len(clusters)
    if merged:
        logger.debug("Merged %d overlapping group(s) into existing clusters", merged)

    return clusters


def _build_cluster(slug: str, display_index: int, beats: list[Beat]) -> Cluster:
    tags: dict[str, None] = {}
    cues: dict[str, None] = {}
    for beat in beats:
        for tag in beat.tags:
            tags.setdefault(tag, None)
        cue = beat.format_cue.strip()
        if cue:
            cues.setdefault(cue, None)

    # max() keeps the first of equally urgent beats
    lead = max(beats, key=lambda beat: beat.urgency_rank)

    return Cluster(
        slug=slug,
        display_index=display_index,
        beats=tuple(beats),
        tags=tuple(tags),
        format_cues=tuple(cues),
        urgency_score=lead.urgency_score,
        urgency_label=lead.urgency_label,
    )
