"""Exception taxonomy and failure classification.

Transient provider errors are not wrapped: whatever google-genai or httpx
raise is retried blindly and then surfaces unchanged. Classification into
authentication vs. generic failures happens only in the pipeline driver.
"""

from enum import Enum

# Substrings that mark an authentication/authorization failure
AUTH_FAILURE_MARKERS = ("401", "403", "API key")


class FailureKind(str, Enum):
    """How a terminal pipeline failure is presented."""

    AUTH = "auth"
    GENERIC = "generic"


class OmnipediaError(Exception):
    """Base class for errors raised by this package."""


class MissingApiKeyError(OmnipediaError):
    """Raised when a stage needs a client but no API key is configured."""

    def __init__(self, message: str = "API key not configured. Please set your API key."):
        super().__init__(message)


class MissingPayloadError(OmnipediaError):
    """Raised when a response lacks the field a stage expects."""


class InvalidTransitionError(OmnipediaError):
    """Raised on an illegal GenerationStatus transition."""


class PipelineBusyError(OmnipediaError):
    """Raised when a run is requested while another one is in flight."""


class StaleRunError(OmnipediaError):
    """Raised when an abandoned run tries to continue under its old token."""


def classify_failure(exc: BaseException) -> FailureKind:
    """Classify a terminal failure by its message.

    Returns:
        FailureKind.AUTH if the message carries a 401/403 or mentions the
        API key, FailureKind.GENERIC otherwise.
    """
    message = str(exc)
    if any(marker in message for marker in AUTH_FAILURE_MARKERS):
        return FailureKind.AUTH
    return FailureKind.GENERIC
