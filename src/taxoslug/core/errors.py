"""Failure classification for taxonomy fetches.

``classify`` maps any failure to an :class:`ErrorDescriptor` by matching
substrings of its message text. The first matching rule wins, so the rule
order below is part of the contract (``"Failed to fetch ... 500"`` is a
network error, not a server error).

The descriptor drives both the retry policy and whatever the caller shows
to a user (``user_message`` and ``redirect_hint``).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Kind of a classified failure."""

    NETWORK = "network"
    AUTH = "auth"
    VALIDATION = "validation"
    NOT_FOUND = "notFound"
    RATE_LIMITED = "rateLimited"
    SERVER = "server"
    CLIENT = "client"
    UNKNOWN = "unknown"
    SLUG_COLLISION = "slugCollision"


# Never retried, even if a descriptor says otherwise.
NON_RETRYABLE_KINDS = frozenset({ErrorKind.AUTH, ErrorKind.VALIDATION})

DEFAULT_USER_MESSAGE = "Something went wrong. Please try again."
LOGIN_REDIRECT = "/login"

_STATUS_CODE = re.compile(r"\d{3}")


@dataclass(frozen=True)
class ErrorDescriptor:
    """Typed description of a failure."""

    kind: ErrorKind
    retryable: bool
    user_message: str
    message: str = ""
    redirect_hint: str | None = None
    status_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "retryable": self.retryable,
            "userMessage": self.user_message,
            "message": self.message,
            "redirectHint": self.redirect_hint,
            "statusCode": self.status_code,
        }


class TaxoslugError(Exception):
    """Base exception for taxoslug failures.

    Carries the :class:`ErrorDescriptor` that describes it, so callers can
    render ``user_message`` without classifying again.
    """

    def __init__(self, descriptor: ErrorDescriptor):
        self.descriptor = descriptor
        super().__init__(descriptor.message or descriptor.user_message)

    @property
    def kind(self) -> ErrorKind:
        return self.descriptor.kind


class TaxonomyFetchError(TaxoslugError):
    """Populating the taxonomy failed after the retry budget was spent."""


class SlugCollisionError(TaxoslugError):
    """Two distinct taxonomy names produce the same slug."""

    def __init__(self, slug: str, first: str, second: str):
        self.slug = slug
        self.names = (first, second)
        super().__init__(
            ErrorDescriptor(
                kind=ErrorKind.SLUG_COLLISION,
                retryable=False,
                message=f"Names {first!r} and {second!r} both map to slug {slug!r}",
                user_message="The specialty list is inconsistent. Please contact support.",
            )
        )


def _contains_any(message: str, needles: tuple[str, ...]) -> bool:
    return any(needle in message for needle in needles)


def classify(error: object, context: str | None = None) -> ErrorDescriptor:
    """Classify a failure.

    Args:
        error: Exception, message string or any other object
        context: Optional subject name used in validation / not-found messages

    Returns:
        ErrorDescriptor; unrecognised failures are ``unknown`` and retryable.
    """
    if isinstance(error, TaxoslugError):
        return error.descriptor

    if isinstance(error, str):
        return ErrorDescriptor(
            kind=ErrorKind.UNKNOWN,
            retryable=True,
            message=error,
            user_message=error or DEFAULT_USER_MESSAGE,
        )

    if not isinstance(error, BaseException):
        return ErrorDescriptor(
            kind=ErrorKind.UNKNOWN,
            retryable=True,
            message="An unknown error occurred",
            user_message=DEFAULT_USER_MESSAGE,
        )

    message = str(error)

    if _contains_any(message, ("fetch", "Network", "ERR_NETWORK")):
        return ErrorDescriptor(
            kind=ErrorKind.NETWORK,
            retryable=True,
            message=message,
            user_message="Network error. Please check your internet connection and try again.",
        )

    if _contains_any(message, ("401", "Unauthorized", "Session expired")):
        return ErrorDescriptor(
            kind=ErrorKind.AUTH,
            retryable=False,
            message=message,
            user_message="Your session has expired. Please log in again.",
            redirect_hint=LOGIN_REDIRECT,
            status_code=401,
        )

    if _contains_any(message, ("400", "Bad Request", "Invalid", "validation")):
        user_message = (
            f"Invalid {context}. Please check your input and try again."
            if context
            else "Invalid input. Please check your data and try again."
        )
        return ErrorDescriptor(
            kind=ErrorKind.VALIDATION,
            retryable=False,
            message=message,
            user_message=user_message,
            status_code=400,
        )

    if _contains_any(message, ("404", "Not Found", "not found")):
        user_message = (
            f"{context} not found. Please check the URL or browse available options."
            if context
            else "The requested resource was not found."
        )
        return ErrorDescriptor(
            kind=ErrorKind.NOT_FOUND,
            retryable=False,
            message=message,
            user_message=user_message,
            status_code=404,
        )

    if _contains_any(message, ("429", "Too Many Requests")):
        return ErrorDescriptor(
            kind=ErrorKind.RATE_LIMITED,
            retryable=True,
            message=message,
            user_message="Too many requests. Please wait a moment and try again.",
            status_code=429,
        )

    if _contains_any(
        message,
        (
            "500",
            "502",
            "503",
            "504",
            "Internal Server Error",
            "Bad Gateway",
            "Service Unavailable",
            "Gateway Timeout",
        ),
    ):
        match = _STATUS_CODE.search(message)
        return ErrorDescriptor(
            kind=ErrorKind.SERVER,
            retryable=True,
            message=message,
            user_message="Server error. Please try again in a few moments.",
            status_code=int(match.group(0)) if match else 500,
        )

    if _contains_any(message, ("timeout", "Timeout")):
        return ErrorDescriptor(
            kind=ErrorKind.NETWORK,
            retryable=True,
            message=message,
            user_message="Request timed out. Please try again.",
        )

    if _contains_any(message, ("ChunkLoadError", "Loading chunk")):
        return ErrorDescriptor(
            kind=ErrorKind.CLIENT,
            retryable=True,
            message=message,
            user_message="Failed to load application resources. Please refresh the page.",
        )

    return ErrorDescriptor(
        kind=ErrorKind.UNKNOWN,
        retryable=True,
        message=message,
        user_message=DEFAULT_USER_MESSAGE,
    )


def should_retry(error: object) -> bool:
    """Return True if re-attempting the failed operation may succeed."""
    descriptor = classify(error)
    return descriptor.retryable and descriptor.kind not in NON_RETRYABLE_KINDS


def describe_failure(
    error: object, subject: str | None = None, operation: str | None = None
) -> str:
    """Build a user-facing message for a failure about one taxonomy member.

    Falls back to the descriptor's own ``user_message`` unless both
    ``subject`` and ``operation`` are given.
    """
    descriptor = classify(error, subject)
    if not (subject and operation):
        return descriptor.user_message

    kind = descriptor.kind
    if kind is ErrorKind.NETWORK:
        return f"Network error while {operation} for {subject}. Please check your connection."
    if kind is ErrorKind.AUTH:
        return "Your session has expired. Please log in again."
    if kind is ErrorKind.VALIDATION:
        return f'Invalid specialty "{subject}". Please check the URL.'
    if kind in (ErrorKind.NOT_FOUND, ErrorKind.CLIENT):
        return f'Specialty "{subject}" not found. Please browse available specialties.'
    if kind is ErrorKind.SERVER:
        return f"Server error while {operation} for {subject}. Please try again."
    return f"Failed to {operation} for {subject}. Please try again."


async def with_error_handling(
    operation: Callable[[], Awaitable[T]],
    context: str | None = None,
    on_error: Callable[[ErrorDescriptor], None] | None = None,
) -> T:
    """Await ``operation``, reporting a classified failure before re-raising it."""
    try:
        return await operation()
    except Exception as e:
        descriptor = classify(e, context)
        logger.debug("Operation failed (%s): %s", descriptor.kind.value, descriptor.message)
        if on_error is not None:
            on_error(descriptor)
        raise
