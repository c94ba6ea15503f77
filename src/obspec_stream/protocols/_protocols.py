"""Core protocol definitions for transports and readers."""

from __future__ import annotations

from collections.abc import Coroutine
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from obspec import GetResultAsync, ObjectMeta

T = TypeVar("T")


@runtime_checkable
class Transport(Protocol):
    """
    Asynchronous client able to fetch objects and their metadata by bucket and key.

    A transport is shared by every [Bucket][obspec_stream.Bucket] and
    [RemoteObject][obspec_stream.RemoteObject] derived from the same
    [S3][obspec_stream.S3] handle, so implementations should keep their
    connection pools on the instance and be safe to use from many objects.

    Transports raise the [ObjectOperationError][obspec_stream.errors.ObjectOperationError]
    taxonomy rather than their backend's native exceptions.

    The built-in implementations are
    [ObstoreTransport][obspec_stream.transports.ObstoreTransport] and
    [AiohttpTransport][obspec_stream.transports.AiohttpTransport].

    !!! Warning
        It's recommended to define your own protocols. This protocol may change without warning.
    """

    async def get_object(
        self,
        bucket: str,
        key: str,
        *,
        byte_range: tuple[int, int] | None = None,
    ) -> GetResultAsync:
        """
        Fetch an object, or an inclusive byte range of it.

        Parameters
        ----------
        bucket
            Bucket name.
        key
            Object key.
        byte_range
            Inclusive `(start, end)` offsets, as in an HTTP `Range: bytes=start-end`
            header. `None` fetches the whole object.

        Returns
        -------
        GetResultAsync
            The response body, to be consumed with `buffer_async()` or `async for`.
        """
        ...

    async def head_object(
        self,
        bucket: str,
        key: str,
        *,
        if_modified_since: datetime | None = None,
    ) -> ObjectMeta:
        """
        Fetch the object's metadata without its body.

        Parameters
        ----------
        bucket
            Bucket name.
        key
            Object key.
        if_modified_since
            Make the request conditional. When the object has not changed since
            this timestamp, [NotModifiedError][obspec_stream.errors.NotModifiedError]
            is raised instead of returning metadata.

        Returns
        -------
        ObjectMeta
            Metadata with at least `size` and `last_modified`.
        """
        ...


class Runner(Protocol):
    """
    Drives coroutines to completion on behalf of blocking callers.

    See [BackgroundLoopRunner][obspec_stream.runners.BackgroundLoopRunner] and
    [EphemeralRunner][obspec_stream.runners.EphemeralRunner].
    """

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run `coro`, block until it finishes, and return its result."""
        ...


@runtime_checkable
class ReadableFile(Protocol):
    """
    Protocol for read-only file-like objects.

    [RemoteObject][obspec_stream.RemoteObject] implements this protocol, so it
    can be passed to libraries that expect file handles.
    """

    def read(self, size: int = -1, /) -> bytes: ...

    def seek(self, offset: int, whence: int = 0, /) -> int: ...

    def tell(self) -> int: ...


__all__ = ["Transport", "Runner", "ReadableFile"]
