"""File-like access to a single remote object."""

from __future__ import annotations

import logging
import operator
import os
import sys
from datetime import datetime
from typing import TYPE_CHECKING

from obspec_stream.errors import (
    InternalInvariantError,
    InvalidSeekError,
    NotModifiedError,
    ObjectOperationError,
    ResponseFailureError,
    to_stream_error,
)
from obspec_stream.readers import AsyncObjectReader
from obspec_stream.runners import get_default_runner

if TYPE_CHECKING:
    from collections.abc import Buffer

    from obspec import GetResultAsync

    from obspec_stream.protocols import Runner, Transport

logger = logging.getLogger(__name__)


class RemoteObject:
    """
    A read-only, seekable, file-like view of one object in a bucket.

    Bytes are fetched on demand with ranged GET requests; nothing is cached
    except the object's length and last-modified timestamp. The length is
    resolved lazily by the first operation that needs it, via
    [`refresh_metadata()`][obspec_stream.RemoteObject.refresh_metadata].

    The asynchronous methods ([`get()`][obspec_stream.RemoteObject.get],
    [`get_range()`][obspec_stream.RemoteObject.get_range],
    [`refresh_metadata()`][obspec_stream.RemoteObject.refresh_metadata],
    [`reader()`][obspec_stream.RemoteObject.reader]) raise
    [ObjectOperationError][obspec_stream.errors.ObjectOperationError]. The
    blocking file-like methods (`read`, `readinto`, `seek`) drive them through
    a [Runner][obspec_stream.protocols.Runner] and raise
    [ObjectStreamError][obspec_stream.errors.ObjectStreamError], an
    [OSError][] subclass, instead.

    Instances are not thread-safe. They are cheap to create (the transport is
    shared), so give each thread its own object.

    Examples
    --------

    ```python
    from obspec_stream import S3

    obj = S3.from_env().bucket("my-bucket").object("data/file.bin")
    obj.seek(-16, 2)
    trailer = obj.read(16)
    ```

    Usually created through [Bucket.object()][obspec_stream.Bucket.object]
    rather than directly.
    """

    def __init__(
        self,
        bucket_name: str,
        key: str,
        transport: Transport,
        *,
        runner: Runner | None = None,
    ) -> None:
        """
        Create a handle for `key` in `bucket_name`.

        Parameters
        ----------
        bucket_name
            Name of the bucket holding the object.
        key
            Key of the object.
        transport
            Shared [Transport][obspec_stream.protocols.Transport] used for every request.
        runner
            Runner used by the blocking methods. Defaults to the process-wide
            [BackgroundLoopRunner][obspec_stream.runners.BackgroundLoopRunner].
        """
        self._bucket_name = bucket_name
        self._key = key
        self._transport = transport
        self._runner = runner if runner is not None else get_default_runner()
        self._position = 0
        self._length: int | None = None
        self._last_modified: datetime | None = None
        self._closed = False

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    @property
    def key(self) -> str:
        return self._key

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def length(self) -> int | None:
        """Cached object size in bytes, or `None` before the first metadata refresh."""
        return self._length

    @property
    def last_modified(self) -> datetime | None:
        """Cached last-modified timestamp, or `None` before the first metadata refresh."""
        return self._last_modified

    @property
    def closed(self) -> bool:
        return self._closed

    # --- Async operations ---

    async def get(self) -> GetResultAsync:
        """
        Fetch the whole object.

        Returns
        -------
        GetResultAsync
            The transport's response body, unmodified.
        """
        return await self._transport.get_object(self._bucket_name, self._key)

    async def reader(self) -> AsyncObjectReader:
        """Fetch the whole object and wrap the body in an [AsyncObjectReader][obspec_stream.AsyncObjectReader]."""
        body = await self.get()
        return AsyncObjectReader(body, bucket_name=self._bucket_name, key=self._key)

    async def get_range(self, start: int, end: int) -> GetResultAsync:
        """
        Fetch the bytes from `start` to `end`, both inclusive.

        Parameters
        ----------
        start
            First byte offset.
        end
            Last byte offset. Must not be smaller than `start`.

        Returns
        -------
        GetResultAsync
            The response body holding `end - start + 1` bytes, fewer if the
            object ends earlier.
        """
        start = operator.index(start)
        end = operator.index(end)
        if start < 0 or end < start:
            raise ValueError(f"invalid inclusive byte range [{start}, {end}]")
        return await self._transport.get_object(
            self._bucket_name, self._key, byte_range=(start, end)
        )

    async def refresh_metadata(self) -> None:
        """
        Refresh the cached length and last-modified timestamp.

        When a timestamp is already cached the request is conditional: if the
        service reports the object as unchanged, the call succeeds without
        touching the cache.

        Raises
        ------
        InternalInvariantError
            If the reported size does not fit the platform's size type.
        ObjectOperationError
            Any other failure, as raised by the transport.
        """
        try:
            meta = await self._transport.head_object(
                self._bucket_name,
                self._key,
                if_modified_since=self._last_modified,
            )
        except NotModifiedError:
            logger.debug(
                "s3://%s/%s not modified since %s",
                self._bucket_name,
                self._key,
                self._last_modified,
            )
            return

        size = meta["size"]
        if not isinstance(size, int) or not 0 <= size <= sys.maxsize:
            raise InternalInvariantError(
                "object content length does not fit into the platform size type",
                bucket_name=self._bucket_name,
                key=self._key,
                data={"content_length": size},
            )
        self._length = size
        self._last_modified = meta.get("last_modified")
        logger.debug(
            "s3://%s/%s has length %d, last modified %s",
            self._bucket_name,
            self._key,
            size,
            self._last_modified,
        )

    async def _fetch_range(self, start: int, end: int) -> bytes:
        body = await self.get_range(start, end)
        try:
            return bytes(await body.buffer_async())
        except ObjectOperationError:
            raise
        except Exception as exc:
            raise ResponseFailureError(
                f"failed to read response body: {exc}",
                bucket_name=self._bucket_name,
                key=self._key,
            ) from exc

    # --- Blocking file-like interface ---

    def _check_closed(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed object.")

    def _ensure_length(self) -> int:
        """Resolve the object length, refreshing metadata if it is unknown."""
        if self._length is None:
            try:
                self._runner.run(self.refresh_metadata())
            except ObjectOperationError as exc:
                raise to_stream_error(exc) from exc
        assert self._length is not None
        return self._length

    def readinto(self, buffer: Buffer, /) -> int:
        """
        Read up to `len(buffer)` bytes into `buffer`.

        Returns
        -------
        int
            The number of bytes read. `0` means end of stream. Fewer bytes
            than requested may be returned; callers wanting an exact amount
            should loop.
        """
        self._check_closed()
        view = memoryview(buffer).cast("B")
        if len(view) == 0:
            return 0
        length = self._ensure_length()
        if self._position >= length:
            return 0

        start = self._position
        end = min(start + len(view), length) - 1
        try:
            data = self._runner.run(self._fetch_range(start, end))
        except InternalInvariantError as exc:
            raise AssertionError(
                "a range fetch must not report an internal invariant violation"
            ) from exc
        except ObjectOperationError as exc:
            raise to_stream_error(exc) from exc

        received = min(len(data), len(view))
        view[:received] = data[:received]
        self._position += received
        logger.debug(
            "read %d bytes at offset %d from s3://%s/%s",
            received,
            start,
            self._bucket_name,
            self._key,
        )
        return received

    def read(self, size: int = -1, /) -> bytes:
        """
        Read up to `size` bytes from the object.

        Parameters
        ----------
        size
            Number of bytes to read. If negative, read from the current
            position to the end of the object.

        Returns
        -------
        bytes
            The data read; empty at end of stream.
        """
        self._check_closed()
        if size is None or size < 0:
            size = max(self._ensure_length() - self._position, 0)
        buffer = bytearray(size)
        received = self.readinto(buffer)
        return bytes(buffer[:received])

    def readall(self) -> bytes:
        """Read from the current position to the end of the object."""
        return self.read(-1)

    def seek(self, offset: int, whence: int = os.SEEK_SET, /) -> int:
        """
        Move the position and return it.

        Parameters
        ----------
        offset
            Position offset.
        whence
            Reference point: 0=start (SEEK_SET), 1=current (SEEK_CUR), 2=end (SEEK_END).

        Seeking past the end places the position at the end. Seeking before
        the start raises
        [InvalidSeekError][obspec_stream.errors.InvalidSeekError] and leaves
        the position unchanged.
        """
        self._check_closed()
        offset = operator.index(offset)
        length = self._ensure_length()

        if whence == os.SEEK_SET:
            if offset < 0:
                raise InvalidSeekError(f"negative seek position {offset}")
            self._position = min(offset, length)
        elif whence == os.SEEK_END:
            if offset >= 0:
                self._position = length
            elif -offset > length:
                raise InvalidSeekError("tried to seek to a negative offset")
            else:
                self._position = length + offset
        elif whence == os.SEEK_CUR:
            if offset >= 0:
                self._position = min(self._position + offset, length)
            elif -offset > self._position:
                raise InvalidSeekError("tried to seek to a negative offset")
            else:
                self._position += offset
        else:
            raise InvalidSeekError(f"invalid whence ({whence}, should be 0, 1 or 2)")

        return self._position

    def tell(self) -> int:
        """Return the current position in bytes from the start of the object."""
        self._check_closed()
        return self._position

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def close(self) -> None:
        """Mark the object closed. The shared transport stays open."""
        self._closed = True

    def __enter__(self) -> "RemoteObject":
        """Enter the context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the context manager and close the object."""
        self.close()

    def __repr__(self) -> str:
        return (
            f"RemoteObject(bucket_name={self._bucket_name!r}, key={self._key!r}, "
            f"position={self._position}, length={self._length})"
        )


__all__ = ["RemoteObject"]
