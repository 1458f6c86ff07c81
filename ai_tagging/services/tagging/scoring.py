"""Multi-source confidence fusion.

Each source's confidence is first sharpened by a per-source weight
(``c ** w``; a lower weight lifts the confidence more), then the sources are
combined with a dampened noisy-OR:

    remaining = prod(1 - enhanced_i * damping)
    fused     = max(1 - remaining, max_i(enhanced_i))

Agreement between sources raises the score above any single source, while the
damping factor keeps two mediocre sources from reaching certainty. The floor at
the best single enhanced confidence means adding evidence never lowers a score.
"""

import logging
import math
from collections.abc import Iterable, Mapping

from ai_tagging.schemas.tagging import ScoredTag, Source, SourcePrediction

logger = logging.getLogger(__name__)

DAMPING_FACTOR = 0.8

SOURCE_WEIGHTS: dict[Source, float] = {
    Source.BASIC_INFO: 0.70,
    Source.MATERIALIZED_PATH: 0.75,
    Source.CONTENT_ANALYSIS: 0.85,
    Source.TAG_KEYWORDS: 0.95,
}


def fuse(
    confidence_by_sources: Mapping[Source, float | None],
    weights: Mapping[Source, float] | None = None,
    damping: float = DAMPING_FACTOR,
) -> float:
    """Fuse per-source confidences into one value in [0, 1].

    Args:
        confidence_by_sources: Partial map of source to confidence in [0, 1].
            ``None`` values are treated as absent.
        weights: Per-source exponent overrides, merged over SOURCE_WEIGHTS.
        damping: Noisy-OR damping factor, defaults to DAMPING_FACTOR.

    Returns:
        0.0 for an empty map, otherwise the fused confidence.
    """
    weights = {**SOURCE_WEIGHTS, **{Source(k): v for k, v in (weights or {}).items()}}
    remaining = 1.0
    max_weighted = 0.0

    for source, confidence in confidence_by_sources.items():
        if confidence is None:
            continue
        enhanced = confidence ** weights[Source(source)]
        max_weighted = max(max_weighted, enhanced)
        remaining *= 1 - enhanced * damping

    return max(1 - remaining, max_weighted)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from zero (not banker's rounding)."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def to_score(fused: float) -> int:
    """Convert a fused confidence to the stored 0-100 integer score."""
    return round_half_up(fused * 100)


def calculate_tag_scores(
    predictions: Iterable[SourcePrediction],
    weights: Mapping[Source, float] | None = None,
    damping: float = DAMPING_FACTOR,
) -> list[ScoredTag]:
    """Group predictions by leaf tag and score each group.

    Groups keep first-seen order and the first-seen tag path. When a source
    reports the same leaf twice, the later confidence wins.
    """
    grouped: dict[int | None, ScoredTag] = {}

    for prediction in predictions:
        for tag in prediction.tags:
            scored = grouped.get(tag.leaf_tag_id)
            if scored is None:
                scored = ScoredTag(leaf_tag_id=tag.leaf_tag_id, tag_path=list(tag.tag_path))
                grouped[tag.leaf_tag_id] = scored
            scored.confidence_by_sources[prediction.source] = tag.confidence

    for scored in grouped.values():
        scored.score = to_score(fuse(scored.confidence_by_sources, weights, damping))

    logger.debug("Scored %d distinct tags", len(grouped))
    return list(grouped.values())
