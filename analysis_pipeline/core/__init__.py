"""Core components for the analysis pipeline."""

from .analysis_client import AnalysisClient
from .classifier import classify, render_entities
from .consume_handler import (
    ConsumeHandler,
    ImageResultHandler,
    TextResultHandler,
    build_consume_handler,
)
from .ingest_handler import (
    IngestHandler,
    ImageIngestHandler,
    TextIngestHandler,
    build_ingest_handler,
)
from .publisher import Publisher
from .result_assembler import assemble_image_result, assemble_text_result
from .storage import ResultStore

__all__ = [
    "AnalysisClient",
    "classify",
    "render_entities",
    "ConsumeHandler",
    "ImageResultHandler",
    "TextResultHandler",
    "build_consume_handler",
    "IngestHandler",
    "ImageIngestHandler",
    "TextIngestHandler",
    "build_ingest_handler",
    "Publisher",
    "assemble_image_result",
    "assemble_text_result",
    "ResultStore",
]
