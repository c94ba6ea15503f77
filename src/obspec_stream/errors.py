"""Error taxonomy for remote object operations and the stream interface.

Two families of exceptions live here:

- [ObjectOperationError][obspec_stream.errors.ObjectOperationError] and its
  subclasses are raised by the asynchronous operations
  ([`RemoteObject.get()`][obspec_stream.RemoteObject.get],
  [`get_range()`][obspec_stream.RemoteObject.get_range],
  [`refresh_metadata()`][obspec_stream.RemoteObject.refresh_metadata]) and by
  transports. They keep the richest information available.
- [ObjectStreamError][obspec_stream.errors.ObjectStreamError] and its
  subclasses are raised by the synchronous file-like operations (`read`,
  `readinto`, `seek`). They derive from the builtin exceptions that `io`
  users already handle ([OSError][], [TimeoutError][],
  [FileNotFoundError][], [ValueError][]).

[`to_stream_error()`][obspec_stream.errors.to_stream_error] converts the first
family into the second.

!!! Note
    The taxonomy is open-ended. Code that dispatches on error kinds should
    always keep a fallback branch for kinds that are added later.
"""

from __future__ import annotations

import enum
import errno
from typing import Any


class ObjectOperationError(Exception):
    """
    Base class for failures of a remote object operation.

    Parameters
    ----------
    message
        Human readable description.
    bucket_name
        Bucket of the object the operation targeted.
    key
        Key of the object the operation targeted.
    data
        Extra structured context for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        bucket_name: str | None = None,
        key: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket_name = bucket_name
        self.key = key
        self.data: dict[str, Any] = dict(data or {})
        if bucket_name is not None:
            self.data.setdefault("bucket_name", bucket_name)
        if key is not None:
            self.data.setdefault("key", key)

    def __str__(self) -> str:
        if self.bucket_name is None or self.key is None:
            return self.message
        return f"{self.message} (bucket={self.bucket_name!r}, key={self.key!r})"


# --- Transport-level errors ---


class TransportError(ObjectOperationError):
    """Infrastructure failure independent of the object's semantics."""


class RequestTimeoutError(TransportError):
    """The request did not complete within the transport's timeout."""


class ConstructionFailureError(TransportError):
    """The request could not be built (malformed request or configuration)."""


class DispatchFailureError(TransportError):
    """The request could not be sent (connection, DNS, TLS)."""


class ResponseFailureError(TransportError):
    """The response could not be read or was malformed."""


# --- Service-level errors ---


class ServiceError(ObjectOperationError):
    """The service answered with an error about the object."""


class ObjectNotFoundError(ServiceError):
    """The bucket or key does not exist."""


class InvalidObjectStateError(ServiceError):
    """The object exists but cannot be read in its current state (e.g. archived)."""


class UnhandledServiceError(ServiceError):
    """A service error code this library does not recognise."""

    def __init__(self, message: str, *, code: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.code = code
        if code is not None:
            self.data.setdefault("code", code)


# --- Other ---


class InternalInvariantError(ObjectOperationError):
    """A value reported by the service cannot be represented locally."""


class NotModifiedError(ObjectOperationError):
    """
    The object is unchanged since the timestamp given in a conditional request.

    Transports raise this from `head_object(..., if_modified_since=...)`.
    [`RemoteObject.refresh_metadata()`][obspec_stream.RemoteObject.refresh_metadata]
    treats it as success, so callers never see it.
    """


# --- Stream errors ---


class StreamErrorKind(enum.Enum):
    """Kinds of failures surfaced through the file-like interface."""

    TIMED_OUT = "timed_out"
    NOT_FOUND = "not_found"
    INVALID_DATA = "invalid_data"
    INVALID_INPUT = "invalid_input"
    OTHER = "other"


class ObjectStreamError(OSError):
    """Base class for errors raised by the synchronous stream operations."""

    kind: StreamErrorKind = StreamErrorKind.OTHER
    _errno: int = errno.EIO

    def __init__(self, message: str) -> None:
        super().__init__(self._errno, message)


class StreamTimeoutError(ObjectStreamError, TimeoutError):
    kind = StreamErrorKind.TIMED_OUT
    _errno = errno.ETIMEDOUT


class StreamNotFoundError(ObjectStreamError, FileNotFoundError):
    kind = StreamErrorKind.NOT_FOUND
    _errno = errno.ENOENT


class InvalidDataError(ObjectStreamError):
    kind = StreamErrorKind.INVALID_DATA
    _errno = errno.EBADMSG


class InvalidSeekError(ObjectStreamError, ValueError):
    """Raised when a seek would move the position before the start of the object."""

    kind = StreamErrorKind.INVALID_INPUT
    _errno = errno.EINVAL


_STREAM_ERRORS: list[tuple[type[ObjectOperationError], type[ObjectStreamError]]] = [
    (RequestTimeoutError, StreamTimeoutError),
    (ObjectNotFoundError, StreamNotFoundError),
    (InvalidObjectStateError, InvalidDataError),
]


def to_stream_error(error: ObjectOperationError) -> ObjectStreamError:
    """
    Convert an operation error into the equivalent stream error.

    Timeouts become [StreamTimeoutError][obspec_stream.errors.StreamTimeoutError],
    missing objects [StreamNotFoundError][obspec_stream.errors.StreamNotFoundError],
    objects in an unreadable state
    [InvalidDataError][obspec_stream.errors.InvalidDataError]. Everything else,
    including error kinds added in the future, becomes a plain
    [ObjectStreamError][obspec_stream.errors.ObjectStreamError].

    The caller is expected to chain the original with `raise ... from error`.
    """
    for operation_error, stream_error in _STREAM_ERRORS:
        if isinstance(error, operation_error):
            return stream_error(str(error))
    return ObjectStreamError(str(error))


__all__ = [
    "ObjectOperationError",
    "TransportError",
    "RequestTimeoutError",
    "ConstructionFailureError",
    "DispatchFailureError",
    "ResponseFailureError",
    "ServiceError",
    "ObjectNotFoundError",
    "InvalidObjectStateError",
    "UnhandledServiceError",
    "InternalInvariantError",
    "NotModifiedError",
    "StreamErrorKind",
    "ObjectStreamError",
    "StreamTimeoutError",
    "StreamNotFoundError",
    "InvalidDataError",
    "InvalidSeekError",
    "to_stream_error",
]
