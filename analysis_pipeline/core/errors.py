"""
Exceptions raised by the analysis pipeline.

Everything except the safe-search side check propagates to the trigger,
which owns redelivery and alerting.
"""


class PipelineError(Exception):
    """Base error for the analysis pipeline."""
    pass


class ValidationError(PipelineError):
    """A required field is missing from an event or message payload."""
    pass


class BackendError(PipelineError):
    """An analysis backend rejected the call or timed out."""

    def __init__(self, capability: str, message: str):
        self.capability = capability
        super().__init__(f"{capability} call failed: {message}")


class MalformedResponseError(PipelineError):
    """An analysis backend answered without the expected fields."""

    def __init__(self, capability: str, message: str):
        self.capability = capability
        super().__init__(f"{capability} response malformed: {message}")


class IncompleteAnalysisError(PipelineError):
    """A result payload was assembled without one of its analysis responses."""
    pass


class PublishError(PipelineError):
    """Publishing a result to Pub/Sub failed."""

    def __init__(self, topic: str, message: str):
        self.topic = topic
        super().__init__(f"Publishing to {topic} failed: {message}")


class DecodeError(PipelineError):
    """A Pub/Sub message body could not be decoded into JSON."""
    pass


class StorageError(PipelineError):
    """Writing a result artifact to Cloud Storage failed."""
    pass
