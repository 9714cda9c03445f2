"""Typed failures raised by the assistant pipeline and mapped to HTTP responses."""

from __future__ import annotations

from typing import Optional

from fastapi import status


class AssistantError(Exception):
    """Base class for pipeline errors; carries the HTTP status used at the edge."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        if status_code:
            self.status_code = status_code


class UpstreamUnavailable(AssistantError):
    """The job service could not be reached or rejected the request."""


class UpstreamRunFailed(AssistantError):
    """A run reached a failure terminal state."""

    def __init__(self, status_name: str, *, run_id: str = "") -> None:
        super().__init__(f"Run {run_id or '?'} ended with status: {status_name}")
        self.status = status_name
        self.run_id = run_id


class UpstreamTimeout(AssistantError):
    """A run did not reach a terminal state within the polling bounds."""

    def __init__(self, run_id: str, attempts: int, elapsed_s: float) -> None:
        super().__init__(
            f"Run {run_id} did not complete in time after {attempts} checks ({elapsed_s:.1f}s)"
        )
        self.run_id = run_id
        self.attempts = attempts
        self.elapsed_s = elapsed_s


class ExtractionNotFound(AssistantError):
    """No assistant message carried a valid materials/tools payload."""


class InvalidRequestError(AssistantError):
    """The inbound request is missing required fields or names an unknown action."""

    status_code = status.HTTP_400_BAD_REQUEST
