"""
Result handlers, triggered by Pub/Sub messages from the ingest stage.

Each handler decodes the message, validates the payload, renders the
artifact text and writes it to the results bucket. Artifact names and
contents depend only on the payload, so redelivered messages overwrite the
same object with the same content.
"""

import json
import base64
import binascii
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .classifier import render_entities
from .errors import DecodeError, ValidationError
from .models import (
    ImageResultPayload,
    PersistedArtifact,
    PipelineKind,
    ResultPayload,
    TextResultPayload,
)
from .storage import ResultStore

logger = logging.getLogger(__name__)


class ConsumeState(str, Enum):
    RECEIVED = "Received"
    DECODED = "Decoded"
    VALIDATED = "Validated"
    CLASSIFIED = "Classified"
    PERSISTED = "Persisted"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class ConsumeResult:
    state: ConsumeState
    artifact: PersistedArtifact
    payload: Optional[ResultPayload] = None


def decode_message(message: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Decode a Pub/Sub message into its JSON body.

    Args:
        message: Pub/Sub message with base64-encoded ``data``

    Returns:
        The decoded JSON object

    Raises:
        DecodeError: No data, bad base64, bad UTF-8, or not a JSON object
    """
    data = (message or {}).get("data")
    if not data:
        raise DecodeError("Pub/Sub message has no data")

    try:
        raw = base64.b64decode(data, validate=True)
        body = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError) as e:
        # json.JSONDecodeError and UnicodeDecodeError are both ValueErrors
        raise DecodeError(f"Could not decode Pub/Sub message: {e}") from e

    if not isinstance(body, dict):
        raise DecodeError(f"Pub/Sub message body is not a JSON object: {type(body).__name__}")
    return body


class ConsumeHandler(ABC):
    """
    Shared consume state machine. Subclasses supply required fields,
    the artifact name suffix and the artifact rendering.
    """

    kind: PipelineKind
    suffix: str
    payload_model: Type[BaseModel]
    # (field, label) pairs checked before model validation
    required_fields: Tuple[Tuple[str, str], ...] = (("filename", "Filename"),)

    def __init__(self, store: ResultStore):
        self.store = store

    def _log_state(self, file_name: Optional[str], state: ConsumeState):
        logger.info(f"[{self.kind.value} result] {file_name or '<unknown>'}: {state.value}")

    @classmethod
    def artifact_name(cls, filename: str) -> str:
        return f"{filename}{cls.suffix}"

    def validate(self, body: Dict[str, Any]) -> ResultPayload:
        """Raises ValidationError if a required field is missing or malformed."""
        for field_name, label in self.required_fields:
            if not body.get(field_name):
                raise ValidationError(
                    f'{label} not provided. Make sure you have a "{field_name}" property in your request'
                )
        try:
            return self.payload_model.model_validate(body)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {self.kind.value.lower()} result payload: {e}") from e

    @abstractmethod
    def render(self, payload: ResultPayload) -> str:
        """Build the artifact text for a payload."""

    async def handle(self, message: Optional[Dict[str, Any]]) -> ConsumeResult:
        """
        Process one Pub/Sub message.

        Raises:
            DecodeError: The message body is not base64 JSON
            ValidationError: Required payload fields are missing
            StorageError: The artifact could not be written
        """
        self._log_state(None, ConsumeState.RECEIVED)
        file_name = None

        try:
            body = decode_message(message)
            self._log_state(body.get("filename"), ConsumeState.DECODED)

            payload = self.validate(body)
            file_name = payload.filename
            logger.info(f"Received request to save file {file_name}")
            self._log_state(file_name, ConsumeState.VALIDATED)

            content = self.render(payload)
            artifact = await self.store.save(self.artifact_name(file_name), content)
            self._log_state(file_name, ConsumeState.PERSISTED)

        except Exception as e:
            logger.error(f"[{self.kind.value} result] {file_name or '<unknown>'}: {ConsumeState.FAILED.value}: {e}", exc_info=True)
            raise

        logger.info(f"File {artifact.name} saved.")
        self._log_state(file_name, ConsumeState.DONE)
        return ConsumeResult(state=ConsumeState.DONE, artifact=artifact, payload=payload)


class TextResultHandler(ConsumeHandler):
    """Classifies entity sentiment and saves the labels as ``<name>Processed.txt``."""

    kind = PipelineKind.TEXT
    suffix = "Processed.txt"
    payload_model = TextResultPayload

    def render(self, payload: TextResultPayload) -> str:
        content = render_entities(payload.entities)
        logger.debug(f"Classified {len(payload.entities)} entities for {payload.filename}")
        self._log_state(payload.filename, ConsumeState.CLASSIFIED)
        return content


class ImageResultHandler(ConsumeHandler):
    """Saves the detected image text as ``<name>.txt``."""

    kind = PipelineKind.IMAGE
    suffix = ".txt"
    payload_model = ImageResultPayload
    required_fields = (("text", "Text"), ("filename", "Filename"))

    def render(self, payload: ImageResultPayload) -> str:
        return payload.text


CONSUME_HANDLERS = {
    PipelineKind.TEXT: TextResultHandler,
    PipelineKind.IMAGE: ImageResultHandler,
}


def build_consume_handler(kind: PipelineKind, store: ResultStore) -> ConsumeHandler:
    """Create the result handler for a pipeline kind."""
    return CONSUME_HANDLERS[kind](store)
