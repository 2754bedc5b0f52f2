"""
Result assembly: merges analysis responses into the payloads published on
Pub/Sub.
"""

import logging
from typing import Optional

from .errors import IncompleteAnalysisError
from .models import (
    AnalysisResponse,
    Capability,
    ImageResultPayload,
    TextResultPayload,
)

logger = logging.getLogger(__name__)


def assemble_text_result(
    sentiment: Optional[AnalysisResponse],
    entities: Optional[AnalysisResponse],
    filename: str
) -> TextResultPayload:
    """
    Build the text pipeline payload.

    Both responses must come from the same AnalysisRequest; the caller
    guarantees that by reusing one request for both calls.

    Args:
        sentiment: SENTIMENT response
        entities: ENTITY_SENTIMENT response
        filename: Name of the triggering file

    Returns:
        Payload with document score/magnitude and every entity in backend order

    Raises:
        IncompleteAnalysisError: Either response is missing
    """
    if sentiment is None or sentiment.sentiment is None:
        raise IncompleteAnalysisError(f"Sentiment analysis missing for {filename}")
    if entities is None or entities.capability != Capability.ENTITY_SENTIMENT:
        raise IncompleteAnalysisError(f"Entity sentiment analysis missing for {filename}")
    if sentiment.source_uri != entities.source_uri:
        raise IncompleteAnalysisError(
            f"Analysis responses disagree on source: {sentiment.source_uri} != {entities.source_uri}"
        )

    payload = TextResultPayload(
        magnitude=sentiment.sentiment.magnitude,
        score=sentiment.sentiment.score,
        entities=list(entities.entities),
        filename=filename
    )

    logger.debug(f"Assembled text result for {filename} with {len(payload.entities)} entities")
    return payload


def assemble_image_result(text: str, filename: str, detected_language: str) -> ImageResultPayload:
    """Build the image pipeline payload."""
    if not text:
        raise IncompleteAnalysisError(f"No detected text for {filename}")
    if not detected_language:
        raise IncompleteAnalysisError(f"Language detection missing for {filename}")

    return ImageResultPayload(
        text=text,
        filename=filename,
        source_language=detected_language
    )
