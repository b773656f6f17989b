"""
Error types for reflection sessions.

Transport and shape errors come from collaborator endpoints, the others from
the session workflows and state model. RequestCancelled is not a failure:
workflows swallow it and leave state untouched.
"""

from typing import Optional


class ReframeError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(ReframeError):
    """A collaborator endpoint answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ResponseShapeError(ReframeError):
    """A response body did not carry the expected text field."""


class SummaryUnavailable(ReframeError):
    """A forced summary produced no usable summary text."""


class NoBiasesFound(ReframeError):
    """A bias analysis completed but identified no biases."""


class RequestCancelled(ReframeError):
    """A request was superseded or cancelled before its result was applied."""


class StageNotReady(ReframeError):
    """A stage was invoked before the stage it depends on was completed."""


class SessionImportError(ReframeError):
    """A session snapshot is structurally invalid and was not imported."""


class ServiceNotConfigured(ReframeError):
    """A collaborator service is missing its credentials or backend."""
