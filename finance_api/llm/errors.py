"""
Error hierarchy for the generative-AI integration.

Transport and protocol errors are retryable; everything else fails fast.
Callers that have a heuristic fallback catch ``AIClientError`` as a whole.
"""
from typing import Optional


class AIClientError(Exception):
    """Base class for every AI integration failure."""
    retryable = False


class AIConfigurationError(AIClientError):
    """Credentials or model are not configured."""


class AIRequestError(AIClientError):
    """The request itself is unusable (e.g. no content parts)."""


class AITransportError(AIClientError):
    """Network failure or timeout talking to the endpoint."""
    retryable = True


class AIProtocolError(AIClientError):
    """Non-2xx status or a body that is not the expected JSON document."""
    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AIContentError(AIClientError):
    """The response decoded fine but carries no usable text."""


class AICancelledError(AIClientError):
    """The caller cancelled the call or its deadline passed."""


class AIRetriesExhaustedError(AIClientError):
    """Every attempt failed with a retryable error."""

    def __init__(self, message: str, attempts: int, last_error: Optional[AIClientError] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class AIParseError(AIClientError):
    """Model output is not valid JSON or lacks the required fields."""
