"""
Exception taxonomy for the webhook pipeline.

None of these are fatal to the process: intake errors are turned into HTTP
responses, processing errors into stats and decision records.
"""


class JobberAgentError(Exception):
    """Base class for all pipeline errors."""


class AuthenticationError(JobberAgentError):
    """Webhook signature is missing, malformed or does not match."""


class InvalidPayloadError(JobberAgentError):
    """Webhook body passed signature validation but is not a usable event."""


class QueueError(JobberAgentError):
    """Event could not be accepted by the queue."""


class QueueFullError(QueueError):
    """Queue is at capacity."""


class QueueClosedError(QueueError):
    """Queue is shutting down and no longer accepts events."""


class EnrichmentError(JobberAgentError):
    """Entity data could not be fetched from Jobber. Retryable."""

    def __init__(self, message, topic=None, item_id=None):
        super().__init__(message)
        self.topic = topic
        self.item_id = item_id


class UnknownActionError(JobberAgentError):
    """A decision referenced an action name with no implementation."""

    def __init__(self, action):
        super().__init__(f"Unknown action: {action}")
        self.action = action


class AnalysisError(JobberAgentError):
    """Featurizing, rule evaluation or scoring failed unexpectedly."""
