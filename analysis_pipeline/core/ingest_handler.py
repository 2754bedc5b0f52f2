"""
Ingest handlers, triggered by Cloud Storage uploads.

Workflow:
1. Skip deletion events
2. Validate bucket and file name
3. Run the pipeline's analysis calls against one AnalysisRequest
4. Assemble the result payload
5. Publish it to the pipeline's result topic

Any failure is logged and re-raised so the trigger redelivers the event.
Nothing is published after a failure.
"""

import asyncio
import logging
import concurrent.futures
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .analysis_client import AnalysisClient
from .models import (
    AnalysisRequest,
    AnalysisResponse,
    Capability,
    FileReference,
    PipelineKind,
    ResultPayload,
    SafeSearchVerdict,
    StorageEvent,
)
from .publisher import Publisher
from .result_assembler import assemble_image_result, assemble_text_result

logger = logging.getLogger(__name__)


class IngestState(str, Enum):
    RECEIVED = "Received"
    VALIDATED = "Validated"
    ANALYZED = "Analyzed"
    ASSEMBLED = "Assembled"
    PUBLISHED = "Published"
    DONE = "Done"
    SKIPPED = "Skipped"
    FAILED = "Failed"


@dataclass
class IngestResult:
    """Terminal state of one ingest invocation."""
    state: IngestState
    file: Optional[FileReference] = None
    payload: Optional[ResultPayload] = None
    message_id: Optional[str] = None


@dataclass
class Analysis:
    """Analysis output for one file. A skip_reason ends the invocation as Skipped."""
    skip_reason: Optional[str] = None

    async def settle(self) -> None:
        """Wait for or abandon side checks still running."""
        return None


@dataclass
class TextAnalysis(Analysis):
    sentiment: Optional[AnalysisResponse] = None
    entities: Optional[AnalysisResponse] = None


@dataclass
class ImageAnalysis(Analysis):
    text: str = ""
    language: Optional[str] = None
    safe_search: Optional["asyncio.Task"] = None
    grace_seconds: float = 0.0

    async def settle(self) -> None:
        task = self.safe_search
        if task is None or task.done():
            return
        _, pending = await asyncio.wait({task}, timeout=self.grace_seconds)
        if pending:
            logger.warning(f"Safe search check still running after {self.grace_seconds}s, abandoning it")
            task.cancel()


class IngestHandler(ABC):
    """
    Shared ingest state machine. Subclasses supply the pipeline's analysis
    calls and payload assembly.
    """

    kind: PipelineKind

    def __init__(self, analysis_client: AnalysisClient, publisher: Publisher, topic: str):
        """
        Initialize the handler.

        Args:
            analysis_client: Analysis backends
            publisher: Pub/Sub publisher
            topic: Result topic for this pipeline
        """
        self.analysis = analysis_client
        self.publisher = publisher
        self.topic = topic

    def _log_state(self, file_name: Optional[str], state: IngestState):
        logger.info(f"[{self.kind.value} ingest] {file_name or '<unknown>'}: {state.value}")

    def build_request(self, file: FileReference) -> AnalysisRequest:
        return AnalysisRequest.for_file(file, self.kind)

    @abstractmethod
    async def _analyze(self, request: AnalysisRequest) -> Analysis:
        """Run the pipeline's analysis calls."""

    @abstractmethod
    def _assemble(self, analysis: Analysis, file: FileReference) -> ResultPayload:
        """Build the payload to publish."""

    async def handle(self, event: StorageEvent) -> IngestResult:
        """
        Process one storage event.

        Returns:
            IngestResult in state Done or Skipped

        Raises:
            PipelineError: Validation, analysis or publish failure
        """
        self._log_state(event.name, IngestState.RECEIVED)

        if event.is_deletion:
            logger.info(f"Ignoring deletion event for {event.name}")
            self._log_state(event.name, IngestState.SKIPPED)
            return IngestResult(state=IngestState.SKIPPED)

        try:
            file = event.to_file_reference()
            self._log_state(file.name, IngestState.VALIDATED)

            analysis = await self._analyze(self.build_request(file))
            self._log_state(file.name, IngestState.ANALYZED)

            try:
                if analysis.skip_reason:
                    logger.info(f"Not publishing result for {file.name}: {analysis.skip_reason}")
                    self._log_state(file.name, IngestState.SKIPPED)
                    return IngestResult(state=IngestState.SKIPPED, file=file)

                payload = self._assemble(analysis, file)
                self._log_state(file.name, IngestState.ASSEMBLED)

                outcome = await self.publisher.publish(self.topic, payload)
                self._log_state(file.name, IngestState.PUBLISHED)
            finally:
                await analysis.settle()

        except Exception as e:
            logger.error(f"[{self.kind.value} ingest] {event.name}: {IngestState.FAILED.value}: {e}", exc_info=True)
            raise

        logger.info(f"File {file.name} processed.")
        self._log_state(file.name, IngestState.DONE)
        return IngestResult(
            state=IngestState.DONE,
            file=file,
            payload=payload,
            message_id=outcome.message_id
        )


class TextIngestHandler(IngestHandler):
    """Document sentiment + entity sentiment, published as a text result."""

    kind = PipelineKind.TEXT

    def __init__(
        self,
        analysis_client: AnalysisClient,
        publisher: Publisher,
        topic: str,
        source_bucket: Optional[str] = None
    ):
        super().__init__(analysis_client, publisher, topic)
        self.source_bucket = source_bucket

    def build_request(self, file: FileReference) -> AnalysisRequest:
        if self.source_bucket:
            file = FileReference(bucket=self.source_bucket, name=file.name)
        return super().build_request(file)

    async def _analyze(self, request: AnalysisRequest) -> TextAnalysis:
        # Same request for both calls so they analyze the same document
        sentiment, entities = await asyncio.gather(
            self.analysis.analyze(request, Capability.SENTIMENT),
            self.analysis.analyze(request, Capability.ENTITY_SENTIMENT)
        )
        return TextAnalysis(sentiment=sentiment, entities=entities)

    def _assemble(self, analysis: TextAnalysis, file: FileReference) -> ResultPayload:
        return assemble_text_result(analysis.sentiment, analysis.entities, file.name)


class ImageIngestHandler(IngestHandler):
    """
    Text detection + language detection, published as an image result.

    Safe search runs alongside as a logged side check and never affects the
    published result.
    """

    kind = PipelineKind.IMAGE

    def __init__(
        self,
        analysis_client: AnalysisClient,
        publisher: Publisher,
        topic: str,
        safe_search_grace_seconds: float = 5.0,
        side_check_workers: int = 4
    ):
        super().__init__(analysis_client, publisher, topic)
        self.safe_search_grace_seconds = safe_search_grace_seconds
        # Kept off the loop's default executor, which asyncio.run joins on exit
        self.side_check_executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=side_check_workers,
            thread_name_prefix="safe-search"
        )

    async def check_safe_search(self, request: AnalysisRequest) -> Optional[SafeSearchVerdict]:
        """Log safe-search likelihoods. Errors are logged and dropped."""
        try:
            response = await self.analysis.analyze(
                request,
                Capability.SAFE_SEARCH,
                executor=self.side_check_executor
            )
        except Exception as e:
            logger.error(f"Vision API failure when finding image safety for {request.source_uri}: {e}", exc_info=True)
            return None

        verdict = response.safe_search
        logger.info(
            f"Safe search for {request.source_uri}: "
            f"Adult: {verdict.adult}, Spoof: {verdict.spoof}, "
            f"Medical: {verdict.medical}, Violence: {verdict.violence}"
        )
        return verdict

    async def _analyze(self, request: AnalysisRequest) -> ImageAnalysis:
        safe_search = asyncio.create_task(self.check_safe_search(request))
        analysis = ImageAnalysis(safe_search=safe_search, grace_seconds=self.safe_search_grace_seconds)

        try:
            detection = await self.analysis.analyze(request, Capability.TEXT_DETECTION)
            analysis.text = detection.text or ""
            if not analysis.text.strip():
                analysis.skip_reason = "no text detected in image"
                return analysis

            language = await self.analysis.analyze(
                request.with_content(analysis.text),
                Capability.LANGUAGE_DETECTION
            )
        except Exception:
            await analysis.settle()
            raise

        analysis.language = language.language
        return analysis

    def _assemble(self, analysis: ImageAnalysis, file: FileReference) -> ResultPayload:
        return assemble_image_result(analysis.text, file.name, analysis.language)


INGEST_HANDLERS = {
    PipelineKind.TEXT: TextIngestHandler,
    PipelineKind.IMAGE: ImageIngestHandler,
}


def build_ingest_handler(kind: PipelineKind, *args, **kwargs) -> IngestHandler:
    """Create the ingest handler for a pipeline kind."""
    return INGEST_HANDLERS[kind](*args, **kwargs)
