"""Tests for the Cloud Function entry points."""

import json
import base64
import pytest
from cloudevents.http import CloudEvent

from analysis_pipeline.cloud_function import main
from analysis_pipeline.config.settings import PipelineConfig
from analysis_pipeline.core.consume_handler import ConsumeState, ImageResultHandler, TextResultHandler
from analysis_pipeline.core.errors import ValidationError
from analysis_pipeline.core.ingest_handler import ImageIngestHandler, IngestState, TextIngestHandler


@pytest.fixture
def runtime(monkeypatch, analysis_client, publisher, result_store):
    runtime = main.PipelineRuntime(
        config=PipelineConfig(gcp_project_id="test-project"),
        text_ingest=TextIngestHandler(analysis_client, publisher, "text-results"),
        image_ingest=ImageIngestHandler(analysis_client, publisher, "image-results"),
        text_result=TextResultHandler(result_store),
        image_result=ImageResultHandler(result_store)
    )
    monkeypatch.setattr(main, "get_runtime", lambda: runtime)
    return runtime


def _storage_event(data, event_type="google.cloud.storage.object.v1.finalized") -> CloudEvent:
    return CloudEvent({
        "type": event_type,
        "source": "//storage.googleapis.com/projects/_/buckets/b",
        "id": "event-1",
    }, data)


def _pubsub_event(body) -> CloudEvent:
    data = base64.b64encode(json.dumps(body).encode("utf-8")).decode("ascii")
    return CloudEvent({
        "type": "google.cloud.pubsub.topic.v1.messagePublished",
        "source": "//pubsub.googleapis.com/projects/test-project/topics/results",
        "id": "event-2",
    }, {"message": {"data": data, "messageId": "m-1"}, "subscription": "sub"})


def test_process_text(runtime, pubsub_client):
    result = main.process_text(_storage_event({"bucket": "b", "name": "doc1.txt"}))

    assert result.state == IngestState.DONE
    assert pubsub_client.publish.call_args.args[0] == "projects/test-project/topics/text-results"


def test_process_image_deleted(runtime, vision_client):
    result = main.process_image(
        _storage_event({"bucket": "b", "name": "pic1.jpg"}, "google.cloud.storage.object.v1.deleted")
    )

    assert result.state == IngestState.SKIPPED
    vision_client.text_detection.assert_not_called()


def test_process_text_validation_error_propagates(runtime):
    with pytest.raises(ValidationError):
        main.process_text(_storage_event({"name": "doc1.txt"}))


def test_save_text_result(runtime, uploaded):
    body = {
        "magnitude": 2,
        "score": 0.6,
        "entities": [{"name": "Acme", "sentiment": {"score": 0.6, "magnitude": 2}}],
        "filename": "doc1.txt",
    }

    result = main.save_text_result(_pubsub_event(body))

    assert result.state == ConsumeState.DONE
    assert result.artifact.name == "doc1.txtProcessed.txt"
    assert uploaded.call_args.args[0] == "\nClearlyPositiveAcme"


def test_save_image_result(runtime, uploaded):
    result = main.save_image_result(_pubsub_event({"text": "hello", "filename": "pic1.jpg", "from": "en"}))

    assert result.artifact.name == "pic1.jpg.txt"
    assert uploaded.call_args.args[0] == "hello"


def test_health_check():
    body, status, headers = main.health_check(None)

    assert status == 200
    assert json.loads(body)["status"] == "healthy"
    assert headers["Content-Type"] == "application/json"
