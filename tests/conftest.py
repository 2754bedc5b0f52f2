"""Shared fixtures for analysis pipeline tests. All Google clients are mocked."""

import json
import base64
import pytest
from unittest.mock import MagicMock

from analysis_pipeline.config import settings
from analysis_pipeline.core.analysis_client import AnalysisClient
from analysis_pipeline.core.publisher import Publisher
from analysis_pipeline.core.storage import ResultStore


@pytest.fixture(autouse=True)
def clear_secret_cache():
    settings._secrets_cache.clear()
    yield
    settings._secrets_cache.clear()


@pytest.fixture
def language_client():
    client = MagicMock()
    client.analyze_sentiment.return_value = {
        "document_sentiment": {"score": 0.6, "magnitude": 2.0},
        "language": "en",
    }
    client.analyze_entity_sentiment.return_value = {
        "entities": [
            {
                "name": "Acme",
                "type_": "ORGANIZATION",
                "salience": 0.8,
                "sentiment": {"score": 0.6, "magnitude": 2.0},
            }
        ]
    }
    return client


@pytest.fixture
def vision_client():
    client = MagicMock()
    client.text_detection.return_value = {
        "text_annotations": [
            {"description": "hello", "locale": "en"},
            {"description": "hello"},
        ]
    }
    client.safe_search_detection.return_value = {
        "safe_search_annotation": {"adult": 1, "spoof": 1, "medical": 2, "violence": 1, "racy": 1}
    }
    return client


@pytest.fixture
def translate_client():
    client = MagicMock()
    client.detect_language.return_value = {
        "languages": [{"language_code": "en", "confidence": 0.98}]
    }
    return client


@pytest.fixture
def analysis_client(language_client, vision_client, translate_client):
    return AnalysisClient(
        project_id="test-project",
        language_client=language_client,
        vision_client=vision_client,
        translate_client=translate_client,
        timeout=5.0
    )


@pytest.fixture
def pubsub_client():
    client = MagicMock()
    client.topic_path.side_effect = lambda project, topic: f"projects/{project}/topics/{topic}"
    future = MagicMock()
    future.result.return_value = "message-1"
    client.publish.return_value = future
    return client


@pytest.fixture
def publisher(pubsub_client):
    return Publisher(project_id="test-project", publisher_client=pubsub_client, timeout=5.0)


@pytest.fixture
def storage_client():
    return MagicMock()


@pytest.fixture
def result_store(storage_client):
    return ResultStore(bucket_name="results-bucket", storage_client=storage_client)


@pytest.fixture
def uploaded(storage_client):
    """Returns the mock blob's upload_from_string, for asserting writes."""
    return storage_client.bucket.return_value.blob.return_value.upload_from_string


@pytest.fixture
def make_message():
    """Build a Pub/Sub message dict with a base64 JSON body."""
    def _make(body) -> dict:
        data = base64.b64encode(json.dumps(body).encode("utf-8")).decode("ascii")
        return {"data": data, "messageId": "1", "attributes": {}}
    return _make


@pytest.fixture
def published_body(pubsub_client):
    """Decode the JSON body of the most recent publish call."""
    def _body() -> dict:
        args, _ = pubsub_client.publish.call_args
        return json.loads(args[1].decode("utf-8"))
    return _body
