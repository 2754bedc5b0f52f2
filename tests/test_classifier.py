"""Tests for sentiment classification and artifact rendering."""

import pytest

from analysis_pipeline.core.classifier import classify, render_entities
from analysis_pipeline.core.models import ClassificationBucket, Entity, SentimentScore


def _entity(name: str, score: float, magnitude: float) -> Entity:
    return Entity(name=name, sentiment=SentimentScore(score=score, magnitude=magnitude))


@pytest.mark.parametrize("magnitude", [0.0, 0.1, 1.0, 25.0])
def test_zero_score_is_neutral_for_any_magnitude(magnitude):
    assert classify(0, magnitude) == ClassificationBucket.NEUTRAL


def test_strong_positive_is_clearly_positive():
    assert classify(0.6, 1) == ClassificationBucket.CLEARLY_POSITIVE


def test_weak_positive_is_positive():
    assert classify(0.3, 1) == ClassificationBucket.POSITIVE
    assert classify(0.5, 1) == ClassificationBucket.POSITIVE


def test_positive_without_magnitude_is_positive():
    assert classify(0.9, 0) == ClassificationBucket.POSITIVE


def test_negative_threshold_is_asymmetric():
    # score < 0.5 holds for every negative score
    assert classify(-0.6, 1) == ClassificationBucket.CLEARLY_NEGATIVE
    assert classify(-0.1, 1) == ClassificationBucket.CLEARLY_NEGATIVE


def test_negative_without_magnitude_is_negative():
    assert classify(-0.6, 0) == ClassificationBucket.NEGATIVE


def test_classify_is_deterministic():
    results = {classify(0.42, 0.7) for _ in range(10)}
    assert results == {ClassificationBucket.POSITIVE}


def test_render_entities_keeps_order_and_drops_numbers():
    entities = [
        _entity("Acme", 0.6, 2.0),
        _entity("Globex", 0.0, 1.0),
        _entity("Initech", -0.4, 0.0),
    ]
    assert render_entities(entities) == "\nClearlyPositiveAcme\nNeutralGlobex\nNegativeInitech"


def test_render_entities_empty():
    assert render_entities([]) == ""
