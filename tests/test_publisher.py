"""Tests for the Pub/Sub result publisher."""

import json
import concurrent.futures
import pytest
from google.api_core.exceptions import AlreadyExists, NotFound, ServiceUnavailable

from analysis_pipeline.core.errors import PublishError
from analysis_pipeline.core.models import ImageResultPayload, TextResultPayload
from analysis_pipeline.core.publisher import encode_payload

IMAGE_PAYLOAD = ImageResultPayload(text="hello", filename="pic1.jpg", source_language="en")


@pytest.mark.asyncio
async def test_publish_to_existing_topic(publisher, pubsub_client):
    outcome = await publisher.publish("image-results", IMAGE_PAYLOAD)

    assert outcome.topic_path == "projects/test-project/topics/image-results"
    assert outcome.message_id == "message-1"
    pubsub_client.create_topic.assert_not_called()
    args, _ = pubsub_client.publish.call_args
    assert args[0] == "projects/test-project/topics/image-results"
    assert json.loads(args[1]) == {"text": "hello", "filename": "pic1.jpg", "from": "en"}


@pytest.mark.asyncio
async def test_missing_topic_is_created(publisher, pubsub_client):
    pubsub_client.get_topic.side_effect = NotFound("no topic")

    await publisher.publish("image-results", IMAGE_PAYLOAD)

    pubsub_client.create_topic.assert_called_once_with(
        request={"name": "projects/test-project/topics/image-results"}
    )
    pubsub_client.publish.assert_called_once()


@pytest.mark.asyncio
async def test_topic_created_concurrently_is_tolerated(publisher, pubsub_client):
    pubsub_client.get_topic.side_effect = NotFound("no topic")
    pubsub_client.create_topic.side_effect = AlreadyExists("created elsewhere")

    outcome = await publisher.publish("image-results", IMAGE_PAYLOAD)

    assert outcome.message_id == "message-1"


@pytest.mark.asyncio
async def test_transport_failure_is_publish_error(publisher, pubsub_client):
    pubsub_client.publish.return_value.result.side_effect = ServiceUnavailable("unavailable")

    with pytest.raises(PublishError) as exc_info:
        await publisher.publish("image-results", IMAGE_PAYLOAD)

    assert exc_info.value.topic == "image-results"


@pytest.mark.asyncio
async def test_unacknowledged_publish_is_publish_error(publisher, pubsub_client):
    pubsub_client.publish.return_value.result.side_effect = concurrent.futures.TimeoutError()

    with pytest.raises(PublishError, match="not acknowledged"):
        await publisher.publish("image-results", IMAGE_PAYLOAD)


@pytest.mark.asyncio
async def test_topic_creation_failure_is_publish_error(publisher, pubsub_client):
    pubsub_client.get_topic.side_effect = NotFound("no topic")
    pubsub_client.create_topic.side_effect = ServiceUnavailable("unavailable")

    with pytest.raises(PublishError):
        await publisher.publish("image-results", IMAGE_PAYLOAD)

    pubsub_client.publish.assert_not_called()


def test_encode_text_payload():
    payload = TextResultPayload(magnitude=2.0, score=0.6, entities=[], filename="doc1.txt")

    body = json.loads(encode_payload(payload).decode("utf-8"))

    assert body == {"magnitude": 2.0, "score": 0.6, "entities": [], "filename": "doc1.txt"}
