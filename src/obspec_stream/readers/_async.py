"""Async reader over a streaming response body."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from obspec_stream.errors import ObjectOperationError, ResponseFailureError

if TYPE_CHECKING:
    from obspec import GetResultAsync, ObjectMeta


class AsyncObjectReader:
    """
    An async file-like reader over a whole-object response body.

    Chunks are pulled from the body only as far as needed to satisfy each
    `read()`, so large objects are not held in memory unless `read()` is
    called without a size. The reader moves forward only; it cannot seek.

    Created by [RemoteObject.reader()][obspec_stream.RemoteObject.reader].

    Examples
    --------

    ```python
    reader = await obj.reader()
    while chunk := await reader.read(64 * 1024):
        process(chunk)
    ```
    """

    def __init__(
        self,
        body: GetResultAsync,
        *,
        bucket_name: str | None = None,
        key: str | None = None,
    ) -> None:
        self._body = body
        self._chunks: AsyncIterator = body.__aiter__()
        self._pending = bytearray()
        self._exhausted = False
        self._bucket_name = bucket_name
        self._key = key

    @property
    def meta(self) -> ObjectMeta:
        """The ObjectMeta reported with the response."""
        return self._body.meta

    async def _next_chunk(self) -> bytes | None:
        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            self._exhausted = True
            return None
        except ObjectOperationError:
            raise
        except Exception as exc:
            raise ResponseFailureError(
                f"failed to read response body: {exc}",
                bucket_name=self._bucket_name,
                key=self._key,
            ) from exc
        return bytes(chunk)

    async def read(self, size: int = -1, /) -> bytes:
        """
        Read up to `size` bytes.

        Parameters
        ----------
        size
            Number of bytes to read. If negative, read until the end of the body.

        Returns
        -------
        bytes
            The data read; empty once the body is exhausted.
        """
        if size is None or size < 0:
            while not self._exhausted:
                chunk = await self._next_chunk()
                if chunk is not None:
                    self._pending += chunk
            data = bytes(self._pending)
            self._pending.clear()
            return data

        while len(self._pending) < size and not self._exhausted:
            chunk = await self._next_chunk()
            if chunk is not None:
                self._pending += chunk
        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data

    async def __aenter__(self) -> "AsyncObjectReader":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop consuming the body and drop any buffered bytes."""
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()
        self._exhausted = True
        self._pending.clear()


__all__ = ["AsyncObjectReader"]
