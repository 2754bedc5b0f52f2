"""
Pydantic models for the analysis pipeline.

Covers storage trigger events, analysis requests/responses, the result
payloads published on Pub/Sub, and the artifacts written back to storage.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

STORAGE_DELETED_EVENT = "google.cloud.storage.object.v1.deleted"


class PipelineKind(str, Enum):
    """The two independent pipelines sharing the handler interfaces."""
    TEXT = "TEXT"
    IMAGE = "IMAGE"


class Capability(str, Enum):
    """Analysis operations offered by the backends."""
    SENTIMENT = "SENTIMENT"
    ENTITY_SENTIMENT = "ENTITY_SENTIMENT"
    TEXT_DETECTION = "TEXT_DETECTION"
    SAFE_SEARCH = "SAFE_SEARCH"
    LANGUAGE_DETECTION = "LANGUAGE_DETECTION"


class ClassificationBucket(str, Enum):
    CLEARLY_POSITIVE = "ClearlyPositive"
    POSITIVE = "Positive"
    CLEARLY_NEGATIVE = "ClearlyNegative"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"


class ResourceState(str, Enum):
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


class FileReference(BaseModel):
    """Identifies a stored object."""
    bucket: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    class Config:
        frozen = True

    @property
    def gcs_uri(self) -> str:
        return f"gs://{self.bucket}/{self.name}"


class StorageEvent(BaseModel):
    """
    A Cloud Storage trigger event.

    Accepts both the legacy background-function shape (``resourceState``)
    and CloudEvents, where deletion is carried by the event type.
    """
    bucket: Optional[str] = None
    name: Optional[str] = None
    resource_state: ResourceState = Field(default=ResourceState.EXISTS, alias="resourceState")

    class Config:
        populate_by_name = True
        extra = "ignore"

    @classmethod
    def from_event(cls, data: Optional[Dict[str, Any]], event_type: Optional[str] = None) -> "StorageEvent":
        data = dict(data or {})
        if event_type == STORAGE_DELETED_EVENT:
            data["resourceState"] = ResourceState.NOT_EXISTS.value
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid storage event: {e}") from e

    @property
    def is_deletion(self) -> bool:
        return self.resource_state == ResourceState.NOT_EXISTS

    def to_file_reference(self) -> FileReference:
        """Raises ValidationError if the bucket or name is missing."""
        if not self.bucket:
            raise ValidationError('Bucket not provided. Make sure you have a "bucket" property in your request')
        if not self.name:
            raise ValidationError('Filename not provided. Make sure you have a "name" property in your request')
        return FileReference(bucket=self.bucket, name=self.name)


class AnalysisRequest(BaseModel):
    """
    One analysis target. Built once per file and reused for every
    capability call against it.

    ``content`` is only read by LANGUAGE_DETECTION, which works on text
    rather than on a stored object.
    """
    source_uri: str = Field(..., min_length=1)
    kind: PipelineKind
    content: Optional[str] = None

    class Config:
        frozen = True

    @classmethod
    def for_file(cls, file: FileReference, kind: PipelineKind) -> "AnalysisRequest":
        return cls(source_uri=file.gcs_uri, kind=kind)

    def with_content(self, content: str) -> "AnalysisRequest":
        return self.model_copy(update={"content": content})


class SentimentScore(BaseModel):
    score: float = Field(..., ge=-1.0, le=1.0)
    magnitude: float = Field(..., ge=0.0)


class Entity(BaseModel):
    name: str
    sentiment: SentimentScore
    type: str = "UNKNOWN"


class SafeSearchVerdict(BaseModel):
    """Likelihood names for each safe-search category."""
    adult: str = "UNKNOWN"
    spoof: str = "UNKNOWN"
    medical: str = "UNKNOWN"
    violence: str = "UNKNOWN"
    racy: str = "UNKNOWN"


class AnalysisResponse(BaseModel):
    """Parsed result of one capability call. Only the capability's own field is set."""
    capability: Capability
    source_uri: str
    sentiment: Optional[SentimentScore] = None
    entities: List[Entity] = Field(default_factory=list)
    text: Optional[str] = None
    language: Optional[str] = None
    safe_search: Optional[SafeSearchVerdict] = None


class TextResultPayload(BaseModel):
    """
    Message body published by the text pipeline. Published payloads always
    carry magnitude and score; consumers only need filename and entities.
    """
    magnitude: Optional[float] = None
    score: Optional[float] = None
    entities: List[Entity] = Field(default_factory=list)
    filename: str = Field(..., min_length=1)


class ImageResultPayload(BaseModel):
    """Message body published by the image pipeline."""
    text: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1)
    source_language: Optional[str] = Field(default=None, alias="from")

    class Config:
        populate_by_name = True


ResultPayload = Union[TextResultPayload, ImageResultPayload]


class PersistedArtifact(BaseModel):
    """Text content written to the results bucket."""
    bucket: str
    name: str
    content: str

    class Config:
        frozen = True
