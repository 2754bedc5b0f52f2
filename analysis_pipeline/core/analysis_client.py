"""
Analysis client for the Cloud Natural Language, Cloud Vision and Cloud
Translation APIs.

Each capability is one remote call. Calls are not retried here; redelivery
of the triggering event is the retry mechanism.
"""

import asyncio
import logging
import concurrent.futures
from typing import Any, Callable, Dict, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import language_v1
from google.cloud import translate_v3
from google.cloud import vision
from pydantic import ValidationError as PydanticValidationError

from .errors import BackendError, MalformedResponseError
from .models import (
    AnalysisRequest,
    AnalysisResponse,
    Capability,
    Entity,
    SafeSearchVerdict,
    SentimentScore,
)

logger = logging.getLogger(__name__)

LIKELIHOODS = ['UNKNOWN', 'VERY_UNLIKELY', 'UNLIKELY', 'POSSIBLE', 'LIKELY', 'VERY_LIKELY']

SAFE_SEARCH_CATEGORIES = ("adult", "spoof", "medical", "violence", "racy")


def _as_dict(message: Any) -> Dict[str, Any]:
    """Convert a proto-plus response message to a plain dict."""
    if message is None:
        return {}
    if isinstance(message, dict):
        return message
    to_dict = getattr(type(message), "to_dict", None)
    if to_dict is None:
        raise TypeError(f"Cannot read response of type {type(message).__name__}")
    return to_dict(message, use_integers_for_enums=False)


def _likelihood_name(value: Any) -> str:
    if isinstance(value, int) and 0 <= value < len(LIKELIHOODS):
        return LIKELIHOODS[value]
    if isinstance(value, str) and value:
        return value
    return LIKELIHOODS[0]


class AnalysisClient:
    """
    Typed wrapper around the analysis backends.

    Google clients are created once (at process start) and shared across
    invocations; no responses are cached.
    """

    def __init__(
        self,
        project_id: str,
        language_client: Optional[Any] = None,
        vision_client: Optional[Any] = None,
        translate_client: Optional[Any] = None,
        timeout: float = 60.0,
        translate_location: str = "global",
        credentials: Optional[Any] = None
    ):
        """
        Initialize the analysis client.

        Args:
            project_id: GCP project ID (used as the Translation API parent)
            language_client: Natural Language client (created if not given)
            vision_client: Vision image annotator client (created if not given)
            translate_client: Translation service client (created if not given)
            timeout: Per-call timeout in seconds
            translate_location: Translation API location
            credentials: Optional credentials for the created clients
        """
        self.project_id = project_id
        self.timeout = timeout
        self.translate_parent = f"projects/{project_id}/locations/{translate_location}"

        self.language = language_client or language_v1.LanguageServiceClient(credentials=credentials)
        self.vision = vision_client or vision.ImageAnnotatorClient(credentials=credentials)
        self.translate = translate_client or translate_v3.TranslationServiceClient(credentials=credentials)

        self._handlers: Dict[Capability, Callable[[AnalysisRequest], AnalysisResponse]] = {
            Capability.SENTIMENT: self._analyze_sentiment,
            Capability.ENTITY_SENTIMENT: self._analyze_entity_sentiment,
            Capability.TEXT_DETECTION: self._detect_text,
            Capability.SAFE_SEARCH: self._detect_safe_search,
            Capability.LANGUAGE_DETECTION: self._detect_language,
        }

        logger.info(f"AnalysisClient initialized for project: {project_id}")

    async def analyze(
        self,
        request: AnalysisRequest,
        capability: Capability,
        executor: Optional[concurrent.futures.Executor] = None
    ) -> AnalysisResponse:
        """
        Run one capability against a request.

        Args:
            request: Analysis target
            capability: Which backend operation to call
            executor: Thread pool for the blocking call (default: the loop's executor)

        Returns:
            Parsed response for the capability

        Raises:
            BackendError: The remote call was rejected or timed out
            MalformedResponseError: The response lacks the expected fields
        """
        handler = self._handlers[capability]
        logger.debug(f"Calling {capability.value} for {request.source_uri}")

        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(executor, lambda: handler(request))
        except (BackendError, MalformedResponseError):
            raise
        except google_exceptions.GoogleAPIError as e:
            raise BackendError(capability.value, str(e)) from e
        except (concurrent.futures.TimeoutError, TimeoutError) as e:
            raise BackendError(capability.value, f"timed out after {self.timeout}s") from e
        except (PydanticValidationError, KeyError, TypeError) as e:
            raise MalformedResponseError(capability.value, str(e)) from e

    # ------------------------------------------------------------------
    # Natural Language
    # ------------------------------------------------------------------

    def _document(self, request: AnalysisRequest) -> language_v1.Document:
        return language_v1.Document(
            gcs_content_uri=request.source_uri,
            type_=language_v1.Document.Type.PLAIN_TEXT
        )

    def _analyze_sentiment(self, request: AnalysisRequest) -> AnalysisResponse:
        response = _as_dict(self.language.analyze_sentiment(
            request={"document": self._document(request), "encoding_type": language_v1.EncodingType.UTF8},
            retry=None,
            timeout=self.timeout
        ))

        sentiment = response.get("document_sentiment")
        if not isinstance(sentiment, dict):
            raise MalformedResponseError(Capability.SENTIMENT.value, "no document_sentiment field")

        score = SentimentScore(
            score=sentiment.get("score", 0.0),
            magnitude=sentiment.get("magnitude", 0.0)
        )
        logger.info(f"Document sentiment for {request.source_uri}: score={score.score} magnitude={score.magnitude}")

        return AnalysisResponse(
            capability=Capability.SENTIMENT,
            source_uri=request.source_uri,
            sentiment=score
        )

    def _analyze_entity_sentiment(self, request: AnalysisRequest) -> AnalysisResponse:
        response = _as_dict(self.language.analyze_entity_sentiment(
            request={"document": self._document(request), "encoding_type": language_v1.EncodingType.UTF8},
            retry=None,
            timeout=self.timeout
        ))

        raw_entities = response.get("entities")
        if not isinstance(raw_entities, list):
            raise MalformedResponseError(Capability.ENTITY_SENTIMENT.value, "no entities field")

        entities = []
        for raw in raw_entities:
            sentiment = raw.get("sentiment")
            if not isinstance(sentiment, dict):
                raise MalformedResponseError(
                    Capability.ENTITY_SENTIMENT.value,
                    f"entity '{raw.get('name', '')}' has no sentiment"
                )
            entity = Entity(
                name=raw.get("name", ""),
                type=str(raw.get("type_", raw.get("type", "UNKNOWN"))),
                sentiment=SentimentScore(
                    score=sentiment.get("score", 0.0),
                    magnitude=sentiment.get("magnitude", 0.0)
                )
            )
            logger.debug(f"Entity {entity.name} mag : {entity.sentiment.magnitude} score : {entity.sentiment.score}")
            entities.append(entity)

        logger.info(f"Found {len(entities)} entities in {request.source_uri}")

        return AnalysisResponse(
            capability=Capability.ENTITY_SENTIMENT,
            source_uri=request.source_uri,
            entities=entities
        )

    # ------------------------------------------------------------------
    # Vision
    # ------------------------------------------------------------------

    def _annotate(self, method: Callable, request: AnalysisRequest, capability: Capability) -> Dict[str, Any]:
        image = vision.Image(source=vision.ImageSource(image_uri=request.source_uri))
        response = _as_dict(method(image=image, retry=None, timeout=self.timeout))

        # Vision reports per-image failures in the response body
        error = response.get("error") or {}
        if error.get("message"):
            raise BackendError(capability.value, error["message"])
        return response

    def _detect_text(self, request: AnalysisRequest) -> AnalysisResponse:
        response = self._annotate(self.vision.text_detection, request, Capability.TEXT_DETECTION)

        annotations = response.get("text_annotations")
        if not isinstance(annotations, list):
            raise MalformedResponseError(Capability.TEXT_DETECTION.value, "no text_annotations field")

        # The first annotation holds the full detected text
        text = annotations[0].get("description", "") if annotations else ""
        logger.info(f"Extracted text from image {request.source_uri}: ({text})")

        return AnalysisResponse(
            capability=Capability.TEXT_DETECTION,
            source_uri=request.source_uri,
            text=text
        )

    def _detect_safe_search(self, request: AnalysisRequest) -> AnalysisResponse:
        response = self._annotate(self.vision.safe_search_detection, request, Capability.SAFE_SEARCH)

        annotation = response.get("safe_search_annotation")
        if not isinstance(annotation, dict):
            raise MalformedResponseError(Capability.SAFE_SEARCH.value, "no safe_search_annotation field")

        verdict = SafeSearchVerdict(**{
            category: _likelihood_name(annotation.get(category))
            for category in SAFE_SEARCH_CATEGORIES
        })

        return AnalysisResponse(
            capability=Capability.SAFE_SEARCH,
            source_uri=request.source_uri,
            safe_search=verdict
        )

    # ------------------------------------------------------------------
    # Translation
    # ------------------------------------------------------------------

    def _detect_language(self, request: AnalysisRequest) -> AnalysisResponse:
        if not request.content:
            raise ValueError("Language detection needs request content")

        response = _as_dict(self.translate.detect_language(
            request={
                "parent": self.translate_parent,
                "content": request.content,
                "mime_type": "text/plain"
            },
            retry=None,
            timeout=self.timeout
        ))

        languages = response.get("languages")
        if not languages:
            raise MalformedResponseError(Capability.LANGUAGE_DETECTION.value, "no languages detected")

        language = languages[0].get("language_code")
        if not language:
            raise MalformedResponseError(Capability.LANGUAGE_DETECTION.value, "no language_code field")

        logger.info(f"Detected language for {request.source_uri}: {language}")

        return AnalysisResponse(
            capability=Capability.LANGUAGE_DETECTION,
            source_uri=request.source_uri,
            language=language
        )
