"""User-facing error text.

Known technical messages from the backend and the transport layer are mapped
to text suitable for notifications. Unknown messages pass through unchanged.
"""

import json
import re
from typing import Any

UNKNOWN_ERROR = "An unknown error occurred"
GENERATION_FAILED = "Generation failed. Please try again later."
RATE_LIMIT_NOTICE = "Too many requests. Please wait a minute and refresh the page."

TRANSLATIONS: dict[str, str] = {
    "Invalid credentials": "Incorrect username or password",
    "Username already taken": "This username is already taken",
    "User not found": "User not found",
    "Unauthorized": "You are not signed in",
    "Forbidden: Admin access required": "Access denied: administrator rights required",
    "Database error": "Database error",
    "Database connection error": "Could not connect to the database",
    "Database is temporarily unavailable. Please try again later.": "The database is temporarily unavailable. Please try again later.",
    "A database error occurred. Please try again later.": "A database error occurred. Please try again later.",
    "Cannot reach database": "Could not connect to the database",
    "Server has closed the connection": "The database connection was closed",
    # Timeouts
    "Request timeout": "The request timed out",
    # Network
    "Failed to fetch": "Could not connect to the server",
    "NetworkError": "Network error",
    "Network request failed": "The network request failed",
    "Load failed": "Could not load data",
    # Server
    "Bad Gateway": "The server is temporarily unavailable",
    "Service Unavailable": "The service is temporarily unavailable",
    "Gateway Timeout": "The server is not responding",
    # Rate limit
    "Rate limit exceeded": "Request limit exceeded",
    "Too many requests": "Too many requests",
}

VALIDATION_PREFIX = "Validation error:"

VALIDATION_TRANSLATIONS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"username: String must contain at least 1 character\(s\)"),
        "Username cannot be empty",
    ),
    (
        re.compile(r"\bpassword: String must contain at least 6 character\(s\)"),
        "Password must be at least 6 characters long",
    ),
    (
        re.compile(r"newPassword: String must contain at least 6 character\(s\)"),
        "New password must be at least 6 characters long",
    ),
]


def get_error_message(error: Any) -> str:
    """Extract a message string from an exception, string or error payload."""
    if isinstance(error, str):
        return error

    if isinstance(error, BaseException):
        message = getattr(error, "message", None)
        if isinstance(message, str) and message:
            return message
        text = str(error)
        return text or UNKNOWN_ERROR

    if isinstance(error, dict):
        if isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error.get("error"), str):
            return error["error"]

        # zod issues: [{path: [...], message}]
        issues = error.get("issues")
        if isinstance(issues, list):
            parts = []
            for issue in issues:
                if not isinstance(issue, dict):
                    continue
                path = issue.get("path") or []
                text = issue.get("message", "")
                parts.append(f"{'.'.join(str(p) for p in path)}: {text}" if path else text)
            return ", ".join(parts)

        # zod flatten: {_errors: [...]}
        if isinstance(error.get("_errors"), list):
            return ", ".join(error["_errors"])

        dumped = json.dumps(error, default=str)
        if dumped != "{}" and len(dumped) < 200:
            return dumped

    return UNKNOWN_ERROR


def translate_error_message(message: str) -> str:
    """Map a technical error message to user-facing text."""
    if message in TRANSLATIONS:
        return TRANSLATIONS[message]

    if VALIDATION_PREFIX in message:
        translated = message.replace(VALIDATION_PREFIX, "Invalid input:")
        for pattern, replacement in VALIDATION_TRANSLATIONS:
            translated = pattern.sub(replacement, translated)
        return translated

    for key, value in TRANSLATIONS.items():
        if key in message:
            return message.replace(key, value)

    lowered = message.lower()

    if any(
        marker in lowered
        for marker in ("failed to fetch", "networkerror", "network request failed", "load failed")
    ):
        return "Could not connect to the server. Check your internet connection or try again later."

    if "timeout" in lowered or "timed out" in lowered:
        # Already carries the number of seconds
        if "seconds" in lowered:
            return message
        return "The request timed out. The server may be overloaded or unavailable."

    if "unavailable" in lowered or "not responding" in lowered:
        if "try again later" in lowered:
            return message
        return "The server is temporarily unavailable. Please try again later."

    if "rate limit" in lowered or "too many requests" in lowered:
        if "wait" in lowered:
            return message
        return "Request limit exceeded. Please wait a moment and try again."

    if "Request failed" in message:
        return "Connection error. Check your internet connection."

    return message


def user_facing_message(error: Any, default: str = UNKNOWN_ERROR) -> str:
    """Translated message for an error, or ``default`` when nothing useful is found."""
    message = get_error_message(error)
    if not message or message == UNKNOWN_ERROR:
        return default
    return translate_error_message(message)
