"""
Pub/Sub publisher for analysis results.

Topics are created on first publish if they do not exist yet.
"""

import json
import asyncio
import logging
import concurrent.futures
from dataclasses import dataclass
from typing import Any, Optional

from google.api_core.exceptions import AlreadyExists, GoogleAPIError, NotFound
from google.cloud import pubsub_v1

from .errors import PublishError
from .models import ResultPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishOutcome:
    topic_path: str
    message_id: str


def encode_payload(payload: ResultPayload) -> bytes:
    """Serialize a result payload to the UTF-8 JSON message body."""
    return json.dumps(payload.model_dump(mode="json", by_alias=True)).encode("utf-8")


class Publisher:
    """Publishes result payloads to named Pub/Sub topics."""

    def __init__(
        self,
        project_id: str,
        publisher_client: Optional[Any] = None,
        timeout: float = 30.0,
        credentials: Optional[Any] = None
    ):
        """
        Initialize the publisher.

        Args:
            project_id: GCP project owning the topics
            publisher_client: Pub/Sub publisher client (created if not given)
            timeout: Seconds to wait for a publish to be acknowledged
            credentials: Optional credentials for the created client
        """
        self.project_id = project_id
        self.timeout = timeout
        self.client = publisher_client or pubsub_v1.PublisherClient(credentials=credentials)
        logger.info(f"Publisher initialized for project: {project_id}")

    def ensure_topic(self, topic: str) -> str:
        """Return the topic path, creating the topic if it does not exist."""
        topic_path = self.client.topic_path(self.project_id, topic)
        try:
            self.client.get_topic(request={"topic": topic_path})
        except NotFound:
            try:
                self.client.create_topic(request={"name": topic_path})
                logger.info(f"Created topic {topic_path}")
            except AlreadyExists:
                # Created concurrently by another invocation
                logger.debug(f"Topic {topic_path} already exists")
        return topic_path

    def publish_sync(self, topic: str, payload: ResultPayload) -> PublishOutcome:
        try:
            topic_path = self.ensure_topic(topic)
            future = self.client.publish(topic_path, encode_payload(payload))
            message_id = future.result(timeout=self.timeout)
        except GoogleAPIError as e:
            raise PublishError(topic, str(e)) from e
        except (concurrent.futures.TimeoutError, TimeoutError) as e:
            raise PublishError(topic, f"not acknowledged after {self.timeout}s") from e

        logger.info(f"Published result for {payload.filename} to {topic_path} (message {message_id})")
        return PublishOutcome(topic_path=topic_path, message_id=message_id)

    async def publish(self, topic: str, payload: ResultPayload) -> PublishOutcome:
        """
        Publish a payload to a topic.

        Raises:
            PublishError: The topic could not be created or the publish failed
        """
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: self.publish_sync(topic, payload))
