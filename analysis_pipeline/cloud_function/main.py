"""
Cloud Function entry points for the analysis pipeline.

process_text / process_image are triggered by Cloud Storage uploads,
save_text_result / save_image_result by messages on the result topics.
Errors propagate out of the functions so the trigger redelivers the event.
"""

import os
import json
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from functools import lru_cache
from typing import Any, Dict, Optional

import functions_framework

from analysis_pipeline import __version__
from analysis_pipeline.config.settings import PipelineConfig, get_pipeline_config, load_credentials
from analysis_pipeline.core.analysis_client import AnalysisClient
from analysis_pipeline.core.consume_handler import ConsumeHandler, ConsumeResult, build_consume_handler
from analysis_pipeline.core.ingest_handler import IngestHandler, IngestResult, build_ingest_handler
from analysis_pipeline.core.models import PipelineKind, StorageEvent
from analysis_pipeline.core.publisher import Publisher
from analysis_pipeline.core.storage import ResultStore

# Configure logging
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@dataclass
class PipelineRuntime:
    """Long-lived handlers shared by every invocation in this process."""
    config: PipelineConfig
    text_ingest: IngestHandler
    image_ingest: IngestHandler
    text_result: ConsumeHandler
    image_result: ConsumeHandler


def create_runtime(config: Optional[PipelineConfig] = None) -> PipelineRuntime:
    """Create the Google clients and wire both pipelines."""
    config = config or get_pipeline_config()
    credentials = load_credentials(config)

    analysis_client = AnalysisClient(
        project_id=config.gcp_project_id,
        timeout=config.analysis.timeout_seconds,
        translate_location=config.analysis.translate_location,
        credentials=credentials
    )

    publisher = Publisher(
        project_id=config.gcp_project_id,
        timeout=config.publish.timeout_seconds,
        credentials=credentials
    )

    store = ResultStore(
        bucket_name=config.storage.results_bucket,
        project_id=config.gcp_project_id,
        credentials=credentials
    )

    return PipelineRuntime(
        config=config,
        text_ingest=build_ingest_handler(
            PipelineKind.TEXT,
            analysis_client,
            publisher,
            config.publish.text_result_topic,
            source_bucket=config.storage.text_bucket
        ),
        image_ingest=build_ingest_handler(
            PipelineKind.IMAGE,
            analysis_client,
            publisher,
            config.publish.image_result_topic,
            safe_search_grace_seconds=config.analysis.safe_search_grace_seconds
        ),
        text_result=build_consume_handler(PipelineKind.TEXT, store),
        image_result=build_consume_handler(PipelineKind.IMAGE, store)
    )


@lru_cache(maxsize=1)
def get_runtime() -> PipelineRuntime:
    runtime = create_runtime()
    logging.getLogger().setLevel(runtime.config.log_level)
    logger.info("Analysis pipeline runtime created")
    return runtime


def _storage_event(cloud_event) -> StorageEvent:
    return StorageEvent.from_event(cloud_event.data, cloud_event["type"])


def _pubsub_message(cloud_event) -> Dict[str, Any]:
    data = cloud_event.data or {}
    # Pub/Sub CloudEvents wrap the message; legacy events carry it directly
    return data.get("message", data)


def _ingest(handler: IngestHandler, cloud_event) -> IngestResult:
    logger.info(f"Ingest triggered by {cloud_event['type']} (event {cloud_event['id']})")
    return asyncio.run(handler.handle(_storage_event(cloud_event)))


def _consume(handler: ConsumeHandler, cloud_event) -> ConsumeResult:
    logger.info(f"Result save triggered by {cloud_event['type']} (event {cloud_event['id']})")
    return asyncio.run(handler.handle(_pubsub_message(cloud_event)))


@functions_framework.cloud_event
def process_text(cloud_event):
    """Analyze sentiment of an uploaded text document and publish the result."""
    return _ingest(get_runtime().text_ingest, cloud_event)


@functions_framework.cloud_event
def process_image(cloud_event):
    """Detect text in an uploaded image and publish it with its language."""
    return _ingest(get_runtime().image_ingest, cloud_event)


@functions_framework.cloud_event
def save_text_result(cloud_event):
    """Classify a published text result and save it to the results bucket."""
    return _consume(get_runtime().text_result, cloud_event)


@functions_framework.cloud_event
def save_image_result(cloud_event):
    """Save a published image text result to the results bucket."""
    return _consume(get_runtime().image_result, cloud_event)


@functions_framework.http
def health_check(request):
    """Health check endpoint for the Cloud Functions."""
    return json.dumps({
        "status": "healthy",
        "service": "analysis-pipeline",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat()
    }), 200, {"Content-Type": "application/json"}
