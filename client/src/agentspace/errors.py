"""Error taxonomy for the agentspace client.

Every failure that crosses the HTTP boundary is turned into an ``ApiError``
subclass by :func:`error_from_response` or by the transport handling in
``agentspace.api``. Local rule violations raise ``DomainError`` before any
request is made.
"""

import json
from typing import Any

import httpx


class AgentSpaceError(Exception):
    """Base exception for the agentspace client."""


class ApiError(AgentSpaceError):
    """A request failed; ``status`` is the HTTP status (0 for transport failures)."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


class AuthError(ApiError):
    """401/403 - the session is no longer valid."""


class RateLimitError(ApiError):
    """429 - the client must stop sending requests for a while."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message, status=429)
        self.retry_after = retry_after


class ServerError(ApiError):
    """502/503/504 - the backend is temporarily unavailable."""


class NetworkError(ApiError):
    """The server could not be reached at all."""

    def __init__(self, message: str):
        super().__init__(message, status=0)


class RequestTimeoutError(ApiError):
    """A short request was aborted after its timeout."""

    def __init__(self, message: str):
        super().__init__(message, status=408)


class NotFoundError(ApiError):
    """404."""


class ValidationError(ApiError):
    """The backend rejected the payload with structured field errors."""

    def __init__(
        self,
        message: str,
        status: int | None = 400,
        field_errors: dict[str, list[str]] | None = None,
        form_errors: list[str] | None = None,
    ):
        super().__init__(message, status=status)
        self.field_errors = field_errors or {}
        self.form_errors = form_errors or []


class DomainError(AgentSpaceError):
    """A local rule was violated; no request was sent."""


class NoActiveProjectError(DomainError):
    """An operation needs an active project and none is selected."""

    def __init__(self, message: str = "No active project selected"):
        super().__init__(message)


class KnowledgeBaseFileError(DomainError):
    """Knowledge base files can only be removed by an administrator."""

    def __init__(self, message: str = "Knowledge base files are managed by an administrator."):
        super().__init__(message)


class FileTooLargeError(DomainError):
    """An upload exceeds the configured size limit."""


SERVER_ERROR_MESSAGES = {
    502: "The server is temporarily unavailable. It may be under maintenance. Please try again later.",
    503: "The service is temporarily unavailable. The server may be overloaded or under maintenance. Please try again later.",
    504: "The server is not responding. The gateway timed out waiting for it. Please try again later.",
}

NETWORK_ERROR_MESSAGE = (
    "Could not connect to the server. Check your internet connection or try again later. "
    "The server may be unavailable."
)


def _flatten_error_object(error: dict[str, Any]) -> tuple[list[str], dict[str, list[str]], list[str]]:
    """Flatten a zod-style ``{fieldErrors, formErrors}`` object.

    Returns:
        Tuple of (messages, field_errors, form_errors)
    """
    messages: list[str] = []
    field_errors: dict[str, list[str]] = {}
    form_errors: list[str] = []

    raw_fields = error.get("fieldErrors")
    if isinstance(raw_fields, dict):
        for field, errors in raw_fields.items():
            if isinstance(errors, str):
                errors = [errors]
            if not isinstance(errors, list):
                continue
            for err in errors:
                if isinstance(err, str):
                    field_errors.setdefault(field, []).append(err)
                    messages.append(f"{field}: {err}")

    raw_form = error.get("formErrors")
    if isinstance(raw_form, list):
        for err in raw_form:
            if isinstance(err, str):
                form_errors.append(err)
                messages.append(err)

    return messages, field_errors, form_errors


def parse_error_body(response: httpx.Response) -> tuple[str, dict[str, list[str]], list[str]]:
    """Extract a human readable message from an error response.

    Args:
        response: The failed response

    Returns:
        Tuple of (message, field_errors, form_errors)
    """
    fallback = response.reason_phrase or "Request failed"
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return fallback, {}, []

    if not isinstance(data, dict):
        return fallback, {}, []

    if isinstance(data.get("message"), str):
        return data["message"], {}, []

    error = data.get("error")
    if isinstance(error, str):
        return error, {}, []

    if isinstance(error, dict):
        messages, field_errors, form_errors = _flatten_error_object(error)
        if messages:
            return ". ".join(messages), field_errors, form_errors
        if isinstance(error.get("message"), str):
            return error["message"], {}, []
        return json.dumps(error), {}, []

    return fallback, {}, []


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def error_from_response(response: httpx.Response) -> ApiError:
    """Map a non-2xx response to the matching ``ApiError`` subclass."""
    status = response.status_code

    if status in SERVER_ERROR_MESSAGES:
        return ServerError(SERVER_ERROR_MESSAGES[status], status=status)

    message, field_errors, form_errors = parse_error_body(response)
    message = message or "Request failed"

    if status == 429:
        return RateLimitError(message, retry_after=_retry_after(response))
    if status in (401, 403):
        return AuthError(message, status=status)
    if status == 404:
        return NotFoundError(message, status=status)
    if status in (400, 422) and (field_errors or form_errors):
        return ValidationError(message, status=status, field_errors=field_errors, form_errors=form_errors)
    return ApiError(message, status=status)
