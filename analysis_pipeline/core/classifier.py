"""Maps sentiment scores to discrete classification buckets."""

from typing import Iterable

from .models import ClassificationBucket, Entity


def classify(score: float, magnitude: float) -> ClassificationBucket:
    """
    Classify a score/magnitude pair.

    The negative branch compares against ``score < 0.5``, which holds for
    every negative score, so any negative score with positive magnitude is
    ClearlyNegative.
    """
    if score > 0:
        if score > 0.5 and magnitude > 0:
            return ClassificationBucket.CLEARLY_POSITIVE
        return ClassificationBucket.POSITIVE
    elif score < 0:
        if score < 0.5 and magnitude > 0:
            return ClassificationBucket.CLEARLY_NEGATIVE
        return ClassificationBucket.NEGATIVE
    return ClassificationBucket.NEUTRAL


def render_entities(entities: Iterable[Entity]) -> str:
    """Newline-delimited ``<bucket><name>`` segments, in entity order."""
    return "".join(
        f"\n{classify(entity.sentiment.score, entity.sentiment.magnitude).value}{entity.name}"
        for entity in entities
    )
